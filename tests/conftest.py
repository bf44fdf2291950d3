"""
Pytest configuration and shared fixtures for NectarHand tests.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests"""
    return np.random.default_rng(42)


@pytest.fixture
def flight_config():
    """Default flyer configuration"""
    from nectarhand.config import create_flight_config
    return create_flight_config()


@pytest.fixture
def hand_config():
    """Default hand configuration"""
    from nectarhand.config import create_hand_config
    return create_hand_config()


@pytest.fixture
def small_flight_config():
    """Small flyer configuration for fast tests"""
    from nectarhand.config import create_small_test_config, AgentKind
    return create_small_test_config(AgentKind.FLIGHT)


@pytest.fixture
def small_hand_config():
    """Small hand configuration for fast tests"""
    from nectarhand.config import create_small_test_config, AgentKind
    return create_small_test_config(AgentKind.HAND)


@pytest.fixture
def empty_world(flight_config):
    """Kinematic world with only the arena wall and ground"""
    from nectarhand.physics import KinematicWorld
    return KinematicWorld(flight_config.physics, flight_config.arena)


@pytest.fixture
def empty_field(flight_config):
    """Resource field without any nodes"""
    from nectarhand.resources import ResourceField
    return ResourceField(flight_config.arena.center, flight_config.arena.diameter)


@pytest.fixture
def line_field():
    """Three standalone nodes on a line along +x, one unit apart"""
    from nectarhand.resources import ResourceField, ResourceNode
    nodes = [ResourceNode([float(x), 1.0, 0.0]) for x in (1, 2, 3)]
    return ResourceField((0.0, 0.0, 0.0), 20.0, nodes)


@pytest.fixture
def flower_world(flight_config, rng):
    """World populated with the procedural flower field"""
    from nectarhand.physics import KinematicWorld
    from nectarhand.resources import build_flower_field
    world = KinematicWorld(flight_config.physics, flight_config.arena)
    field = build_flower_field(world, flight_config.arena, rng)
    return world, field


class FakePhysics:
    """
    Minimal physics port recording every command.

    Overlap queries return whatever `overlaps` holds, so tests can force
    clear or saturated scenes.
    """

    def __init__(self, n_joints: int = 0, drives: bool = True):
        from nectarhand.geometry import IDENTITY
        self.position = np.zeros(3)
        self.rotation = IDENTITY.copy()
        self.forces = []
        self.overlaps = []
        self.overlap_queries = 0
        self.sleeping = False
        self.drives = drives
        self.drive_targets = {}
        self.joint_rotations = [IDENTITY.copy() for _ in range(n_joints)]

    def get_position(self, body_id):
        return self.position.copy()

    def get_rotation(self, body_id):
        return self.rotation.copy()

    def set_pose(self, body_id, position=None, rotation=None):
        if position is not None:
            self.position = np.asarray(position, dtype=float)
        if rotation is not None:
            self.rotation = np.asarray(rotation, dtype=float)

    def apply_force(self, body_id, force):
        self.forces.append(np.asarray(force, dtype=float))

    def apply_torque(self, body_id, torque):
        pass

    def zero_velocity(self, body_id):
        pass

    def overlap_sphere(self, center, radius, ignore_bodies=()):
        self.overlap_queries += 1
        return list(self.overlaps)

    def sleep(self, body_id):
        self.sleeping = True

    def wake_up(self, body_id):
        self.sleeping = False

    def is_sleeping(self, body_id):
        return self.sleeping

    def has_joint_drive(self, body_id, joint):
        return self.drives

    def set_joint_drive_target(self, body_id, joint, angle):
        self.drive_targets[joint] = angle

    def get_joint_rotation(self, body_id, joint):
        return self.joint_rotations[joint].copy()

    def set_joint_rotation(self, body_id, joint, rotation):
        self.joint_rotations[joint] = np.asarray(rotation, dtype=float)

    def step(self, dt):
        return []


@pytest.fixture
def fake_physics():
    """Recording physics port without joints"""
    return FakePhysics()


@pytest.fixture
def fake_physics_factory():
    """Build recording physics ports with joints"""
    return FakePhysics
