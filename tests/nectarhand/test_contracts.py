"""
Unit tests for nectarhand/contracts.py
"""

import pytest
import numpy as np

from nectarhand.agents import FlyerAgent, HandAgent
from nectarhand.config import create_flight_config, create_hand_config
from nectarhand.contracts import (
    AgentLifecycle, ContactEvent, ContactPhase, ContactSurface, ContractViolationError,
    Policy, SpawnExhaustedError, hand_action_size, hand_observation_size, require_length
)
from nectarhand.heuristics import IdlePolicy, RandomPolicy
from nectarhand.physics import KinematicWorld
from nectarhand.resources import ResourceField, Surface


class TestSizes:
    """Tests for vector layouts"""

    def test_hand_sizes(self):
        """Test hand sizes grow with the joint count"""
        assert hand_action_size(14) == 20
        assert hand_observation_size(14) == 71
        assert hand_observation_size(1) == 19

    def test_require_length(self):
        """Test the length guard flattens and checks"""
        assert require_length([[1, 2], [3, 4]], 4, "grid").shape == (4,)
        with pytest.raises(ContractViolationError, match="exactly 3"):
            require_length([1.0, 2.0], 3, "sample")


class TestErrors:
    """Tests for error types"""

    def test_spawn_exhausted_message(self):
        """Test the error keeps the attempt count and the last candidate"""
        error = SpawnExhaustedError(100, np.array([1.0, 2.0, 3.0]))
        assert error.attempts == 100
        assert "100 attempts" in str(error)
        assert isinstance(error, RuntimeError)


class TestProtocols:
    """Tests for structural contracts"""

    def test_agents_implement_lifecycle(self):
        """Test both agents expose the lifecycle callbacks"""
        flight = create_flight_config()
        world = KinematicWorld(flight.physics, flight.arena)
        field = ResourceField(flight.arena.center, flight.arena.diameter)
        assert isinstance(FlyerAgent(flight, world, field, np.random.default_rng(0)), AgentLifecycle)

        hand = create_hand_config()
        world = KinematicWorld(hand.physics, hand.arena)
        assert isinstance(HandAgent(hand, world, np.random.default_rng(0)), AgentLifecycle)

    def test_policies(self):
        """Test baseline policies satisfy the policy protocol"""
        assert isinstance(RandomPolicy(5), Policy)
        assert isinstance(IdlePolicy(5), Policy)

    def test_surfaces(self):
        """Test colliders and standalone surfaces are contact surfaces"""
        flight = create_flight_config()
        world = KinematicWorld(flight.physics, flight.arena)
        assert isinstance(world.wall, ContactSurface)
        assert isinstance(Surface(1, "flower"), ContactSurface)

    def test_trigger_event(self):
        """Test an event is a trigger when either side is"""
        solid = Surface(1, "agent")
        trigger = Surface(2, "nectar", is_trigger=True)
        assert ContactEvent(0, solid, trigger, ContactPhase.ENTER).is_trigger
        assert not ContactEvent(0, solid, Surface(3, "rock"), ContactPhase.STAY).is_trigger
