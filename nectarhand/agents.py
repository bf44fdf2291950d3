"""
NectarHand Agents
=================
The two embodied agents and their lifecycle.

An external harness drives every agent through the same ordered callbacks:

    initialize()                    once, registers bodies with the world
    on_episode_begin()              per episode
    on_action_received(action)      per physics tick, before the world steps
    on_physics_tick(events)         per physics tick, after the world steps
    collect_observations()          per decision

Within a tick, feeding or grasp resolution happens before reward shaping,
which happens before the next observation can be assembled.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .config import SimulationConfig
from .contracts import ContactEvent, ContactPhase
from .control import FlightController, HandController
from .episode import EpisodeController
from .geometry import IDENTITY, distance, forward_of, rotate
from .kinematics import HandModel
from .observation import FlightObservationEncoder, HandObservationEncoder
from .physics import BOUNDARY_TAG, KinematicWorld
from .resources import NECTAR_TAG, ResourceField
from .rewards import FlightRewardShaper, HandRewardShaper
from .spawn import SpawnSampler
from .tracking import NearestTargetTracker

AGENT_TAG = "agent"
BEAK_TAG = "beak"
HAND_TIP_TAG = "hand_tip"
TARGET_TAG = "target"


class FlyerAgent:
    """
    Nectar-seeking flyer.

    Feeds while its beak tip is within reach of a flower's nectar, steers with
    a force plus smoothed pitch/yaw, and always observes its nearest flower
    that still has nectar.
    """

    def __init__(self, config: SimulationConfig, world: KinematicWorld,
                 field: ResourceField, rng: np.random.Generator, name: str = "flyer"):
        self.config = config
        self.world = world
        self.field = field
        self.rng = rng
        self.name = name
        self.logger = logging.getLogger("FlyerAgent")

        self.body_id: Optional[int] = None
        self.controller: Optional[FlightController] = None
        self.episode: Optional[EpisodeController] = None
        self.last_spawn = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self):
        flight = self.config.flight
        start = self.field.center + np.array([0.0, 1.5, 0.0])
        self.body_id = self.world.add_body(start, mass=flight.body_mass)
        self.world.add_collider(self.body_id, flight.body_radius, AGENT_TAG)
        self.world.add_collider(self.body_id, flight.beak_probe_radius, BEAK_TAG,
                                offset=flight.beak_tip_offset, is_trigger=True)

        dt = self.config.physics.fixed_delta_time
        self.controller = FlightController(self.world, self.body_id, flight, dt,
                                           self.config.training_mode)
        self.tracker = NearestTargetTracker(self.field)
        self.sampler = SpawnSampler(self.world, self.field, self.config.spawn, self.rng)
        self.encoder = FlightObservationEncoder(self.field.diameter)
        self.shaper = FlightRewardShaper(self.config.flight_reward)
        self.episode = EpisodeController(self.config.episode, self.field.center, dt, self.name)
        self.logger.debug(f"[{self.name}] Initialized body {self.body_id}")

    def on_episode_begin(self):
        # Only reset flowers in training, where each arena hosts a single agent
        if self.config.training_mode:
            self.field.reset_all()

        self.episode.begin()
        self.shaper.reset()
        self.controller.reset()
        self.world.zero_velocity(self.body_id)

        mode = self.sampler.choose_mode(self.config.training_mode,
                                        self.config.flight.spawn_in_front_probability)
        result = self.sampler.sample(mode, ignore_bodies=(self.body_id,))
        if not result.safe:
            self.logger.warning(f"[{self.name}] Placed at an unsafe position after "
                                f"{result.attempts} attempts")
        self.world.set_pose(self.body_id, result.position, result.rotation)
        self.last_spawn = result

        self.tracker.clear()
        self.tracker.update(self.beak_tip)

    def on_action_received(self, action: Sequence[float]) -> np.ndarray:
        return self.controller.apply(action)

    def on_physics_tick(self, events: List[ContactEvent]) -> float:
        """Resolve this tick's contacts and return the reward it produced"""
        self.episode.tick()
        self.shaper.begin_tick()

        beak = self.beak_tip
        target = self.tracker.target
        if target is not None:
            self.shaper.distance_term(distance(beak, target.center_position))

        fed = set()
        boundary_hit = False
        for event in events:
            if event.body_id != self.body_id:
                continue
            if event.other.tag == NECTAR_TAG and event.other not in fed:
                if self._try_feed(event.other, beak):
                    fed.add(event.other)
            elif (event.other.tag == BOUNDARY_TAG and event.phase == ContactPhase.ENTER
                  and not event.is_trigger):
                boundary_hit = True

        if boundary_hit:
            self.logger.debug(f"[{self.name}] Hit the arena boundary")
            if not self.config.episode.end_on_boundary_collision:
                self.shaper.boundary_collision()

        self.shaper.time_penalty()

        goal = self.config.episode.nectar_goal
        goal_met = goal is not None and self.episode.state.yield_obtained >= goal
        reason = self.episode.check_termination(goal_met, self.position, boundary_hit)
        if reason is not None:
            self.shaper.terminal(reason)

        self.tracker.refresh_if_depleted(self.beak_tip)
        self.episode.record_reward(self.shaper.tick_total)
        if reason is not None:
            self._log_episode_end()
        return self.shaper.tick_total

    def collect_observations(self) -> np.ndarray:
        return self.encoder.encode(self.rotation, self.beak_tip, self.forward, self.tracker.target)

    # =========================================================================
    # FEEDING
    # =========================================================================

    def _try_feed(self, nectar, beak: np.ndarray) -> bool:
        """Feed from a nectar surface if the beak tip itself touches it"""
        # A touch with anything but the beak tip does not count
        closest = self.world.closest_point(nectar, beak)
        if distance(beak, closest) >= self.config.flight.beak_tip_radius:
            return False

        node = self.field.node_for_surface(nectar)
        if node is None or not node.has_yield:
            return False

        taken = node.feed(self.config.flight.feed_amount)
        self.episode.record_yield(taken)
        # Alignment is scored against the tracked target, which may differ from the fed node
        target = self.tracker.target or node
        self.shaper.feed_bonus(self.forward, target.up_vector)
        self.logger.debug(f"[{self.name}] Fed {taken:.3f} from {node}")

        if not node.has_yield:
            self.tracker.update(beak)
        return True

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def position(self) -> np.ndarray:
        return self.world.get_position(self.body_id)

    @property
    def rotation(self) -> np.ndarray:
        return self.world.get_rotation(self.body_id)

    @property
    def forward(self) -> np.ndarray:
        return forward_of(self.rotation)

    @property
    def beak_tip(self) -> np.ndarray:
        return self.position + rotate(self.rotation, self.config.flight.beak_tip_offset)

    @property
    def nearest_target(self):
        return self.tracker.target

    def freeze(self):
        self.controller.freeze()

    def unfreeze(self):
        self.controller.unfreeze()

    def _log_episode_end(self):
        state = self.episode.state
        self.logger.info(f"[{self.name}] Episode {state.episode} ended ({state.end_reason.value}): "
                         f"reward={state.cumulative_reward:.3f}, nectar={state.yield_obtained:.3f}, "
                         f"time={state.elapsed:.2f}s")

    def info(self) -> Dict[str, Any]:
        summary = self.episode.summary()
        summary["reward_terms"] = self.shaper.summary()
        summary["nearest_target"] = self.tracker.index
        summary["flowers_with_nectar"] = self.field.count_with_yield()
        return summary


class HandAgent:
    """
    Articulated hand that has to reach and grasp a falling target.

    The wrist is moved kinematically; the target is a dynamic body that
    rests on the ground. A grasp needs the hand tip within grab distance and
    enough joints within check distance of the target's center.
    """

    def __init__(self, config: SimulationConfig, world: KinematicWorld,
                 rng: np.random.Generator, name: str = "hand"):
        self.config = config
        self.world = world
        self.rng = rng
        self.name = name
        self.logger = logging.getLogger("HandAgent")

        self.model = HandModel(config.hand)
        self.wrist_id: Optional[int] = None
        self.target_id: Optional[int] = None
        self.controller: Optional[HandController] = None
        self.episode: Optional[EpisodeController] = None

    def initialize(self):
        hand = self.config.hand
        self.wrist_id = self.world.add_body(hand.initial_wrist_position, use_gravity=False,
                                            is_kinematic=True)
        self.world.add_collider(self.wrist_id, hand.tip_probe_radius, HAND_TIP_TAG,
                                offset=hand.hand_tip_offset, is_trigger=True)
        for _ in range(self.model.n_joints):
            self.world.add_joint(self.wrist_id, has_drive=hand.use_joint_drives)

        self.target_id = self.world.add_body(hand.initial_target_position, mass=hand.target_mass)
        self.world.add_collider(self.target_id, hand.target_radius, TARGET_TAG)

        dt = self.config.physics.fixed_delta_time
        self.controller = HandController(self.world, self.wrist_id, hand, self.model.n_joints,
                                         dt, self.config.training_mode)
        self.encoder = HandObservationEncoder(self.model.n_joints, self.config.episode.max_episode_time)
        self.shaper = HandRewardShaper(self.config.hand_reward)
        self.episode = EpisodeController(self.config.episode, self.config.arena.center, dt, self.name)
        self.logger.debug(f"[{self.name}] Initialized wrist {self.wrist_id} with "
                          f"{self.model.n_joints} joints, target {self.target_id}")

    def on_episode_begin(self):
        hand = self.config.hand
        self.episode.begin()
        self.shaper.reset()
        self.controller.reset()

        jitter = np.asarray(hand.wrist_jitter, dtype=float)
        wrist = np.asarray(hand.initial_wrist_position) + self.rng.uniform(-jitter, jitter)
        self.world.set_pose(self.wrist_id, wrist, IDENTITY)

        target = np.asarray(hand.initial_target_position) + self.rng.uniform(
            hand.target_jitter_low, hand.target_jitter_high)
        self.world.set_pose(self.target_id, target, IDENTITY)
        self.world.zero_velocity(self.target_id)
        # Overlaps after the teleport count as new contacts
        self.world.reset_contacts()

        self.reset_joints()

    def reset_joints(self):
        """Straighten every finger"""
        for j in range(self.model.n_joints):
            self.world.set_joint_rotation(self.wrist_id, j, IDENTITY)
            if self.world.has_joint_drive(self.wrist_id, j):
                self.world.set_joint_drive_target(self.wrist_id, j, 0.0)

    def on_action_received(self, action: Sequence[float]) -> np.ndarray:
        return self.controller.apply(action)

    def on_physics_tick(self, events: List[ContactEvent]) -> float:
        """Resolve touch, reach and grasp for this tick and return its reward"""
        self.episode.tick()
        self.shaper.begin_tick()

        tip = self.tip_position
        target = self.target_position
        gap = distance(tip, target)
        self.shaper.distance_term(gap)

        touched = any(
            event.body_id == self.wrist_id and event.other.tag == TARGET_TAG
            and event.phase == ContactPhase.ENTER
            for event in events
        )
        if touched:
            self.shaper.touch_bonus()

        state = self.episode.state
        if gap < self.config.hand.grab_distance and not state.grabbed:
            self.shaper.reach_bonus()
            if self.model.is_grasping(tip, target, self.joint_positions()):
                state.grabbed = True
                self.shaper.grab_bonus()
                self.logger.debug(f"[{self.name}] Grabbed the target")

        self.shaper.time_penalty()

        reason = self.episode.check_termination(state.grabbed, self.wrist_position)
        if reason is not None:
            self.shaper.terminal(reason)

        self.episode.record_reward(self.shaper.tick_total)
        if reason is not None:
            self.logger.info(f"[{self.name}] Episode {state.episode} ended ({reason.value}): "
                             f"reward={state.cumulative_reward:.3f}, grabbed={state.grabbed}, "
                             f"time={state.elapsed:.2f}s")
        return self.shaper.tick_total

    def collect_observations(self) -> np.ndarray:
        return self.encoder.encode(
            self.wrist_position, self.wrist_rotation, self.target_position, self.tip_position,
            self.joint_rotations(), self.episode.state.grabbed, self.episode.state.elapsed
        )

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def wrist_position(self) -> np.ndarray:
        return self.world.get_position(self.wrist_id)

    @property
    def wrist_rotation(self) -> np.ndarray:
        return self.world.get_rotation(self.wrist_id)

    @property
    def target_position(self) -> np.ndarray:
        return self.world.get_position(self.target_id)

    @property
    def tip_position(self) -> np.ndarray:
        return self.model.tip_position(self.wrist_position, self.wrist_rotation)

    def joint_rotations(self) -> List[np.ndarray]:
        return [self.world.get_joint_rotation(self.wrist_id, j) for j in range(self.model.n_joints)]

    def joint_positions(self) -> np.ndarray:
        return self.model.joint_positions(self.wrist_position, self.wrist_rotation,
                                          self.joint_rotations())

    def freeze(self):
        self.controller.freeze()

    def unfreeze(self):
        self.controller.unfreeze()

    def info(self) -> Dict[str, Any]:
        summary = self.episode.summary()
        summary["reward_terms"] = self.shaper.summary()
        summary["tip_to_target"] = distance(self.tip_position, self.target_position)
        return summary
