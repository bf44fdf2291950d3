"""
Unit tests for nectarhand/observation.py
"""

import pytest
import numpy as np

from nectarhand.contracts import ContractViolationError
from nectarhand.geometry import IDENTITY, quat_from_euler
from nectarhand.observation import FlightObservationEncoder, HandObservationEncoder
from nectarhand.resources import ResourceNode


class TestFlightObservation:
    """Tests for FlightObservationEncoder"""

    @pytest.fixture
    def encoder(self):
        return FlightObservationEncoder(arena_diameter=20.0)

    def test_no_target_is_zero(self, encoder):
        """Test the observation is all zeros without a target"""
        obs = encoder.encode(IDENTITY, np.zeros(3), np.array([0.0, 0.0, 1.0]), None)
        assert obs.shape == (10,)
        assert obs.dtype == np.float32
        assert not obs.any()

    def test_facing_target(self, encoder):
        """Test values for a beak pointing straight into a flower"""
        node = ResourceNode([0.0, 0.0, 1.0], up_vector=[0.0, 0.0, -1.0])
        obs = encoder.encode(IDENTITY, np.zeros(3), np.array([0.0, 0.0, 1.0]), node)

        assert obs.shape == (10,)
        assert obs.dtype == np.float32
        assert np.allclose(obs[0:4], IDENTITY)
        assert np.allclose(obs[4:7], [0.0, 0.0, 1.0])
        assert obs[7] == pytest.approx(1.0)
        assert obs[8] == pytest.approx(1.0)
        assert obs[9] == pytest.approx(0.05)

    def test_facing_away(self, encoder):
        """Test alignment features go negative behind the flower"""
        node = ResourceNode([0.0, 0.0, 1.0], up_vector=[0.0, 0.0, 1.0])
        obs = encoder.encode(IDENTITY, np.zeros(3), np.array([0.0, 0.0, 1.0]), node)
        assert obs[7] == pytest.approx(-1.0)
        assert obs[8] == pytest.approx(-1.0)

    def test_rotation_is_unit(self, encoder):
        """Test the rotation block is a unit quaternion"""
        node = ResourceNode([3.0, 1.0, 2.0])
        rotation = quat_from_euler(20.0, 130.0, 0.0)
        obs = encoder.encode(rotation, np.zeros(3), np.array([0.0, 0.0, 1.0]), node)
        assert np.linalg.norm(obs[0:4]) == pytest.approx(1.0, abs=1e-6)
        assert np.linalg.norm(obs[4:7]) == pytest.approx(1.0, abs=1e-6)


class TestHandObservation:
    """Tests for HandObservationEncoder"""

    @pytest.fixture
    def encoder(self):
        return HandObservationEncoder(n_joints=14, max_episode_time=30.0)

    def encode(self, encoder, **overrides):
        inputs = dict(
            wrist_position=np.array([0.0, 1.0, 0.0]),
            wrist_rotation=IDENTITY,
            target_position=np.array([1.0, 1.0, 0.0]),
            tip_position=np.array([0.0, 1.0, 0.5]),
            joint_rotations=[IDENTITY] * 14,
            grabbed=True,
            elapsed=15.0,
        )
        inputs.update(overrides)
        return encoder.encode(**inputs)

    def test_size(self, encoder):
        """Test the default hand encodes to 71 floats"""
        obs = self.encode(encoder)
        assert encoder.size == 71
        assert obs.shape == (71,)
        assert obs.dtype == np.float32

    def test_layout(self, encoder):
        """Test each block lands at its fixed offset"""
        obs = self.encode(encoder)
        assert np.allclose(obs[0:3], [0.0, 1.0, 0.0])
        assert np.allclose(obs[3:6], 0.0)
        assert np.allclose(obs[6:9], [1.0, 1.0, 0.0])
        assert np.allclose(obs[9:12], [1.0, 0.0, -0.5])
        assert np.allclose(obs[12:16], IDENTITY)
        assert obs[68] == pytest.approx(np.sqrt(1.25))
        assert obs[69] == 1.0
        assert obs[70] == pytest.approx(0.5)

    def test_euler_scaled(self, encoder):
        """Test the wrist euler block is signed degrees / 180"""
        obs = self.encode(encoder, wrist_rotation=quat_from_euler(-45.0, 90.0, 0.0))
        assert np.allclose(obs[3:6], [-0.25, 0.5, 0.0], atol=1e-6)

    def test_no_time_limit(self):
        """Test the clock feature is zero without a time limit"""
        encoder = HandObservationEncoder(n_joints=14, max_episode_time=None)
        obs = self.encode(encoder, grabbed=False)
        assert obs[69] == 0.0
        assert obs[70] == 0.0

    def test_wrong_joint_count(self, encoder):
        """Test a joint list of the wrong length is a contract violation"""
        with pytest.raises(ContractViolationError):
            self.encode(encoder, joint_rotations=[IDENTITY] * 13)
