"""
NectarHand Spawn Sampling
=========================
Rejection sampling of collision-free agent poses.

Candidates are drawn either just in front of a random resource node or on a
ring around the arena center, and accepted when a small clearance sphere
overlaps nothing. The search is bounded by `max_attempts`; what happens on
exhaustion is decided by the configured SpawnExhaustionPolicy.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np

from .config import SpawnConfig, SpawnMode, SpawnExhaustionPolicy
from .contracts import (
    ContractViolationError, PhysicsPort, ResourceFieldPort, SpawnExhaustedError
)
from .geometry import WORLD_FORWARD, WORLD_UP, look_rotation, quat_from_euler, rotate, yaw_rotation

logger = logging.getLogger("Spawn")


@dataclass
class SpawnResult:
    """Outcome of one spawn search"""
    position: np.ndarray
    rotation: np.ndarray
    safe: bool  # False when placed anyway after exhausting attempts
    attempts: int
    mode: SpawnMode


class SpawnSampler:
    """Bounded rejection sampler over the two spawn modes"""

    def __init__(self, physics: PhysicsPort, field: ResourceFieldPort,
                 config: SpawnConfig, rng: np.random.Generator):
        self.physics = physics
        self.field = field
        self.config = config
        self.rng = rng

    def choose_mode(self, training_mode: bool, in_front_probability: float) -> SpawnMode:
        """Outside training the agent always starts in front of a node"""
        if not training_mode or self.rng.random() < in_front_probability:
            return SpawnMode.TARGET_RELATIVE
        return SpawnMode.ARENA_RELATIVE

    def _target_relative(self) -> Tuple[np.ndarray, np.ndarray]:
        node = self.field.node_at(int(self.rng.integers(len(self.field))))
        offset = self.rng.uniform(*self.config.front_distance)
        position = node.position + node.up_vector * offset

        # Body center looks at the yield center
        rotation = look_rotation(node.center_position - position, WORLD_UP)
        return position, rotation

    def _arena_relative(self) -> Tuple[np.ndarray, np.ndarray]:
        height = self.rng.uniform(*self.config.height)
        radius = self.rng.uniform(*self.config.radius)
        direction = rotate(yaw_rotation(self.rng.uniform(*self.config.yaw)), WORLD_FORWARD)
        position = self.field.center + WORLD_UP * height + direction * radius

        pitch = self.rng.uniform(*self.config.pitch)
        yaw = self.rng.uniform(*self.config.yaw)
        return position, quat_from_euler(pitch, yaw, 0.0)

    def is_clear(self, position: np.ndarray, ignore_bodies: Iterable[int] = ()) -> bool:
        hits = self.physics.overlap_sphere(position, self.config.spawn_radius, ignore_bodies)
        return len(hits) == 0

    def sample(self, mode: SpawnMode, ignore_bodies: Iterable[int] = ()) -> SpawnResult:
        """
        Draw candidates until one is clear or attempts run out.

        Raises:
            ContractViolationError: target-relative mode on an empty field
            SpawnExhaustedError: attempts exhausted under the ABORT policy
        """
        if mode == SpawnMode.TARGET_RELATIVE and len(self.field) == 0:
            raise ContractViolationError("Target-relative spawn needs at least one resource node")

        ignore_bodies = tuple(ignore_bodies)
        position, rotation = None, None
        attempts = 0
        while attempts < self.config.max_attempts:
            attempts += 1
            if mode == SpawnMode.TARGET_RELATIVE:
                position, rotation = self._target_relative()
            else:
                position, rotation = self._arena_relative()

            if self.is_clear(position, ignore_bodies):
                logger.debug(f"Spawn accepted after {attempts} attempts ({mode.value})")
                return SpawnResult(position, rotation, True, attempts, mode)

        logger.error(f"Could not find a safe spawn position after {attempts} attempts ({mode.value})")
        if self.config.exhaustion_policy == SpawnExhaustionPolicy.ABORT:
            raise SpawnExhaustedError(attempts, position)
        return SpawnResult(position, rotation, False, attempts, mode)
