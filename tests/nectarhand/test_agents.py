"""
Unit tests for nectarhand/agents.py

Scenario tests for the flyer (feeding, boundary contacts, spawning) and the
hand (reach, grasp, bounds), driven through the agent callbacks.
"""

import logging
import pytest
import numpy as np

from nectarhand.agents import FlyerAgent, HandAgent, TARGET_TAG
from nectarhand.config import (
    EndReason, SpawnExhaustionPolicy, create_flight_config, create_hand_config
)
from nectarhand.contracts import ContactEvent, ContactPhase, ContractViolationError, SpawnExhaustedError
from nectarhand.geometry import IDENTITY, look_rotation, rotate
from nectarhand.physics import KinematicWorld
from nectarhand.resources import NECTAR_TAG, FLOWER_TAG, ResourceField, ResourceNode

ZERO_FLIGHT = np.zeros(5)


def flight_setup(config=None):
    """Flyer with a single flower facing -z at (0, 1.5, 0)"""
    config = config or create_flight_config()
    config.flight.spawn_in_front_probability = 0.0
    world = KinematicWorld(config.physics, config.arena)

    up = np.array([0.0, 0.0, -1.0])
    position = np.array([0.0, 1.5, 0.0])
    center = position + up * config.arena.nectar_offset
    petal = world.add_static_collider(position, config.arena.flower_radius, FLOWER_TAG)
    nectar = world.add_static_collider(center, config.arena.nectar_radius, NECTAR_TAG, is_trigger=True)
    node = ResourceNode(position, up, petal, nectar, config.arena.nectar_offset)
    field = ResourceField(config.arena.center, config.arena.diameter, [node])

    agent = FlyerAgent(config, world, field, np.random.default_rng(0))
    agent.initialize()
    agent.on_episode_begin()
    return agent, world, node


def place_at_flower(agent, world, node):
    """Put the beak tip at the nectar center, facing the flower"""
    beak_offset = np.asarray(agent.config.flight.beak_tip_offset)
    world.set_pose(agent.body_id, node.center_position - beak_offset, IDENTITY)
    world.zero_velocity(agent.body_id)
    world.reset_contacts()


def physics_tick(agent, world, action):
    agent.on_action_received(action)
    return agent.on_physics_tick(world.step())


class TestFlyerIdle:
    """Tests for a flyer with nothing to feed on"""

    def test_empty_arena_pays_time_penalty(self):
        """Test zero actions in an empty arena earn exactly the time penalty"""
        config = create_flight_config()
        config.flight.spawn_in_front_probability = 0.0
        world = KinematicWorld(config.physics, config.arena)
        field = ResourceField(config.arena.center, config.arena.diameter)
        agent = FlyerAgent(config, world, field, np.random.default_rng(1))
        agent.initialize()
        agent.on_episode_begin()

        assert agent.nearest_target is None
        for _ in range(50):
            reward = physics_tick(agent, world, ZERO_FLIGHT)
            assert reward == pytest.approx(config.flight_reward.time_penalty)
            assert not agent.collect_observations().any()
        assert agent.episode.is_running

    def test_observation_shape(self):
        """Test the flyer observes 10 floats"""
        agent, _, _ = flight_setup()
        obs = agent.collect_observations()
        assert obs.shape == (10,)
        assert obs.dtype == np.float32

    def test_wrong_action_length(self):
        """Test a 4-value action is rejected"""
        agent, _, _ = flight_setup()
        with pytest.raises(ContractViolationError):
            agent.on_action_received(np.zeros(4))


class TestFlyerFeeding:
    """Tests for feeding through the nectar trigger"""

    def test_feed_on_contact(self):
        """Test a head-on beak contact feeds and pays the aligned bonus"""
        agent, world, node = flight_setup()
        place_at_flower(agent, world, node)

        reward = physics_tick(agent, world, ZERO_FLIGHT)
        rewards = agent.config.flight_reward
        expected = rewards.nectar_reward + rewards.alignment_bonus + rewards.time_penalty
        assert reward == pytest.approx(expected)
        assert node.amount == pytest.approx(0.99)
        assert agent.episode.state.yield_obtained == pytest.approx(0.01)

    def test_feeding_empties_flower(self):
        """Test sustained contact drains the flower, then rewards stop"""
        agent, world, node = flight_setup()
        place_at_flower(agent, world, node)

        for _ in range(110):
            physics_tick(agent, world, ZERO_FLIGHT)

        assert node.amount == 0.0
        assert not node.is_active
        assert agent.episode.state.yield_obtained == pytest.approx(1.0, abs=0.011)
        assert agent.nearest_target is None

        reward = physics_tick(agent, world, ZERO_FLIGHT)
        assert reward == pytest.approx(agent.config.flight_reward.time_penalty)

    def test_nectar_goal(self):
        """Test reaching the nectar goal ends the episode with the goal bonus"""
        config = create_flight_config()
        config.episode.nectar_goal = 0.045
        agent, world, node = flight_setup(config)
        place_at_flower(agent, world, node)

        ticks = 0
        reward = 0.0
        while agent.episode.is_running:
            reward = physics_tick(agent, world, ZERO_FLIGHT)
            ticks += 1

        assert ticks == 5
        assert agent.episode.state.end_reason == EndReason.GOAL
        assert reward > config.flight_reward.goal_bonus
        with pytest.raises(ContractViolationError):
            agent.on_physics_tick([])

    def test_one_feed_per_surface_per_tick(self):
        """Test duplicate contacts with the same nectar feed once"""
        agent, world, node = flight_setup()
        place_at_flower(agent, world, node)
        beak = agent.world._body(agent.body_id).colliders[1]
        event = ContactEvent(agent.body_id, beak, node.yield_surface, ContactPhase.STAY)

        agent.on_physics_tick([event, event, event])
        assert node.amount == pytest.approx(0.99)

    def test_far_beak_does_not_feed(self):
        """Test a nectar contact away from the beak tip is ignored"""
        agent, world, node = flight_setup()
        world.set_pose(agent.body_id, node.center_position + np.array([0.0, 0.0, -1.0]), IDENTITY)
        body = agent.world._body(agent.body_id).colliders[0]
        event = ContactEvent(agent.body_id, body, node.yield_surface, ContactPhase.ENTER)

        reward = agent.on_physics_tick([event])
        assert node.amount == 1.0
        assert reward == pytest.approx(agent.config.flight_reward.time_penalty)

    def test_empty_flower_gives_nothing(self):
        """Test contact with an empty flower pays no bonus"""
        agent, world, node = flight_setup()
        place_at_flower(agent, world, node)
        node.feed(1.0)

        reward = physics_tick(agent, world, ZERO_FLIGHT)
        assert reward == pytest.approx(agent.config.flight_reward.time_penalty)
        assert agent.episode.state.yield_obtained == 0.0

    def test_alignment_uses_tracked_target(self):
        """Test the feeding bonus is aligned against the held target, not the fed flower"""
        agent, world, held = flight_setup()
        config = agent.config
        up = np.array([1.0, 0.0, 0.0])
        position = np.array([3.0, 1.5, 0.0])
        center = position + up * config.arena.nectar_offset
        petal = world.add_static_collider(position, config.arena.flower_radius, FLOWER_TAG)
        nectar = world.add_static_collider(center, config.arena.nectar_radius, NECTAR_TAG, is_trigger=True)
        other = ResourceNode(position, up, petal, nectar, config.arena.nectar_offset)
        agent.field.add_node(other)

        agent.tracker.clear()
        agent.tracker.update(held.position)
        assert agent.nearest_target is held

        # Beak on the second flower's nectar, facing it head-on
        rotation = look_rotation(-up)
        world.set_pose(agent.body_id, center - rotate(rotation, config.flight.beak_tip_offset), rotation)
        world.reset_contacts()

        reward = physics_tick(agent, world, ZERO_FLIGHT)
        rewards = config.flight_reward
        assert other.amount == pytest.approx(0.99)
        assert held.amount == 1.0
        assert agent.nearest_target is held
        # Facing -x is square to the held flower's away axis (+z)
        assert reward == pytest.approx(rewards.nectar_reward + rewards.time_penalty)


class TestFlyerBoundary:
    """Tests for arena boundary contacts"""

    def boundary_event(self, agent, world, phase=ContactPhase.ENTER):
        body = world._body(agent.body_id).colliders[0]
        return ContactEvent(agent.body_id, body, world.wall, phase)

    def test_boundary_is_terminal(self):
        """Test a wall hit ends the episode with the boundary penalty"""
        agent, world, _ = flight_setup()
        world.set_pose(agent.body_id, np.array([0.0, 1.5, -3.0]), IDENTITY)
        reward = agent.on_physics_tick([self.boundary_event(agent, world)])

        rewards = agent.config.flight_reward
        assert agent.episode.state.end_reason == EndReason.BOUNDARY_COLLISION
        assert reward == pytest.approx(rewards.boundary_penalty + rewards.time_penalty)

    def test_boundary_non_terminal(self):
        """Test the wall penalty without ending the episode when disabled"""
        config = create_flight_config()
        config.episode.end_on_boundary_collision = False
        agent, world, _ = flight_setup(config)
        world.set_pose(agent.body_id, np.array([0.0, 1.5, -3.0]), IDENTITY)
        reward = agent.on_physics_tick([self.boundary_event(agent, world)])

        assert agent.episode.is_running
        assert reward == pytest.approx(config.flight_reward.boundary_penalty
                                       + config.flight_reward.time_penalty)

    def test_boundary_stay_ignored(self):
        """Test only the entering contact counts"""
        agent, world, _ = flight_setup()
        world.set_pose(agent.body_id, np.array([0.0, 1.5, -3.0]), IDENTITY)
        agent.on_physics_tick([self.boundary_event(agent, world, ContactPhase.STAY)])
        assert agent.episode.is_running

    def test_out_of_bounds(self):
        """Test leaving the arena ends the episode"""
        agent, world, _ = flight_setup()
        world.set_pose(agent.body_id, np.array([0.0, 30.0, 0.0]), IDENTITY)
        agent.on_physics_tick([])
        assert agent.episode.state.end_reason == EndReason.OUT_OF_BOUNDS


class TestFlyerSpawn:
    """Tests for spawn handling at episode start"""

    def test_unsafe_spawn_warns(self, caplog):
        """Test an exhausted spawn places the flyer anyway and warns"""
        config = create_flight_config()
        config.spawn.spawn_radius = 50.0
        config.spawn.max_attempts = 5
        with caplog.at_level(logging.WARNING, logger="FlyerAgent"):
            agent, _, _ = flight_setup(config)

        assert not agent.last_spawn.safe
        assert agent.last_spawn.attempts == 5
        assert any(r.levelno == logging.WARNING and r.name == "FlyerAgent" for r in caplog.records)

    def test_exhausted_spawn_aborts(self):
        """Test the abort policy surfaces from episode start"""
        config = create_flight_config()
        config.spawn.spawn_radius = 50.0
        config.spawn.max_attempts = 5
        config.spawn.exhaustion_policy = SpawnExhaustionPolicy.ABORT
        with pytest.raises(SpawnExhaustedError):
            flight_setup(config)

    def test_gameplay_keeps_flower_state(self):
        """Test flowers are not refilled between gameplay episodes"""
        config = create_flight_config()
        config.training_mode = False
        agent, _, node = flight_setup(config)
        node.feed(0.5)
        agent.on_episode_begin()
        assert node.amount == pytest.approx(0.5)

    def test_training_refills_flowers(self):
        """Test flowers are refilled at each training episode"""
        agent, _, node = flight_setup()
        node.feed(0.5)
        agent.on_episode_begin()
        assert node.amount == 1.0


def hand_setup(**hand_overrides):
    """Hand in zero gravity with its target parked on the hand tip"""
    config = create_hand_config()
    config.physics.gravity = (0.0, 0.0, 0.0)
    for key, value in hand_overrides.items():
        setattr(config.hand, key, value)
    world = KinematicWorld(config.physics, config.arena)
    agent = HandAgent(config, world, np.random.default_rng(0))
    agent.initialize()
    agent.on_episode_begin()

    world.set_pose(agent.wrist_id, np.array([0.0, 1.0, 0.0]), IDENTITY)
    world.set_pose(agent.target_id, agent.tip_position, IDENTITY)
    world.zero_velocity(agent.target_id)
    world.reset_contacts()
    return agent, world


class TestHandAgent:
    """Tests for HandAgent"""

    def test_observation_and_action_sizes(self):
        """Test the default hand observes 71 floats and takes 20 actions"""
        agent, _ = hand_setup()
        assert agent.collect_observations().shape == (71,)
        assert agent.controller.action_size == 20

    def test_episode_begin_randomizes(self):
        """Test wrist and target start inside their jitter boxes"""
        config = create_hand_config()
        world = KinematicWorld(config.physics, config.arena)
        agent = HandAgent(config, world, np.random.default_rng(3))
        agent.initialize()
        agent.on_episode_begin()

        wrist = agent.wrist_position - np.asarray(config.hand.initial_wrist_position)
        assert np.all(np.abs(wrist) <= np.asarray(config.hand.wrist_jitter))
        target = agent.target_position - np.asarray(config.hand.initial_target_position)
        assert np.all(target >= np.asarray(config.hand.target_jitter_low))
        assert np.all(target <= np.asarray(config.hand.target_jitter_high))

    def test_grasp(self):
        """Test a target held by the fingers is reached, grabbed and ends the episode"""
        agent, world = hand_setup(check_distance=0.45)
        agent.config.hand_reward.touch_reward = 0.0

        agent.on_action_received(np.zeros(20))
        reward = agent.on_physics_tick(world.step())

        rewards = agent.config.hand_reward
        expected = rewards.reach_reward + rewards.grab_reward + rewards.goal_bonus + rewards.time_penalty
        assert reward == pytest.approx(expected, abs=1e-3)
        assert agent.episode.state.grabbed
        assert agent.episode.state.end_reason == EndReason.GOAL
        assert agent.episode.is_ended

    def test_reach_without_grasp(self):
        """Test reaching pays every tick until enough joints close in"""
        agent, world = hand_setup()
        rewards = agent.config.hand_reward

        first = physics_tick(agent, world, np.zeros(20))
        second = physics_tick(agent, world, np.zeros(20))

        assert not agent.episode.state.grabbed
        assert agent.episode.is_running
        # Touch is paid on entering contact only
        assert first == pytest.approx(rewards.reach_reward + rewards.touch_reward
                                      + rewards.time_penalty, abs=1e-3)
        assert second == pytest.approx(rewards.reach_reward + rewards.time_penalty, abs=1e-3)

    def test_touch_event_from_target(self):
        """Test the touch bonus follows a tip contact with the target"""
        agent, world = hand_setup()
        tip = world._body(agent.wrist_id).colliders[0]
        target = world._body(agent.target_id).colliders[0]
        assert target.tag == TARGET_TAG

        event = ContactEvent(agent.wrist_id, tip, target, ContactPhase.ENTER)
        world.set_pose(agent.target_id, np.array([3.0, 1.0, 3.0]))
        reward = agent.on_physics_tick([event])
        assert agent.shaper.breakdown["touch"] == pytest.approx(agent.config.hand_reward.touch_reward)
        assert "reach" not in agent.shaper.breakdown
        assert reward < agent.config.hand_reward.touch_reward

    def test_touch_paid_again_next_episode(self):
        """Test a target still on the tip at episode start counts as a new touch"""
        config = create_hand_config()
        config.physics.gravity = (0.0, 0.0, 0.0)
        config.hand.wrist_jitter = (0.0, 0.0, 0.0)
        config.hand.initial_target_position = (0.0, 1.0, 0.5)
        config.hand.target_jitter_low = (0.0, 0.0, 0.0)
        config.hand.target_jitter_high = (0.0, 0.0, 0.0)
        world = KinematicWorld(config.physics, config.arena)
        agent = HandAgent(config, world, np.random.default_rng(0))
        agent.initialize()

        for _ in range(2):
            agent.on_episode_begin()
            physics_tick(agent, world, np.zeros(20))
            assert agent.shaper.breakdown["touch"] == pytest.approx(config.hand_reward.touch_reward)

    def test_out_of_bounds(self):
        """Test the wrist leaving the arena ends the episode"""
        agent, world = hand_setup()
        world.set_pose(agent.wrist_id, np.array([20.0, 1.0, 0.0]))
        agent.on_physics_tick([])
        assert agent.episode.state.end_reason == EndReason.OUT_OF_BOUNDS

    def test_joints_follow_drives(self):
        """Test curling actions bend the fingers over a few ticks"""
        agent, world = hand_setup()
        action = np.zeros(20)
        action[6:] = 1.0
        for _ in range(5):
            physics_tick(agent, world, action)
        spin = world._joint(agent.wrist_id, 0).angle
        assert spin == pytest.approx(45.0)

    def test_freeze_in_gameplay(self):
        """Test a frozen hand ignores actions"""
        agent, world = hand_setup()
        agent.config.training_mode = False
        agent.controller.training_mode = False
        before = agent.wrist_position

        agent.freeze()
        action = np.zeros(20)
        action[0] = 1.0
        agent.on_action_received(action)
        assert np.allclose(agent.wrist_position, before)

        agent.unfreeze()
        agent.on_action_received(action)
        assert agent.wrist_position[0] > before[0]
