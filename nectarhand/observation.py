"""
NectarHand Observation Encoders
===============================
Assemble the fixed-length float32 observation vectors handed to a policy.

Flight (10):
    rotation (4) | unit direction beak tip -> target center (3)
    | direction . -target.up (1) | beak forward . -target.up (1)
    | distance / arena diameter (1)

Hand (15 + 4 per joint):
    wrist position (3) | wrist euler / 180 (3) | target position (3)
    | target - hand tip (3) | joint rotations (4 each)
    | tip-to-target distance (1) | grabbed flag (1) | elapsed / max time (1)
"""

from typing import Optional, Sequence

import numpy as np

from .contracts import (
    FLIGHT_OBSERVATION_SIZE, ResourceNodeView, hand_observation_size, require_length
)
from .geometry import euler_from_quat, normalize, quat_normalize, wrap_angle


class FlightObservationEncoder:
    """Observation of the flyer relative to its nearest target"""

    size = FLIGHT_OBSERVATION_SIZE

    def __init__(self, arena_diameter: float):
        self.arena_diameter = arena_diameter

    def encode(self, rotation: np.ndarray, beak_tip: np.ndarray, beak_forward: np.ndarray,
               target: Optional[ResourceNodeView]) -> np.ndarray:
        # No target left: defined all-zero observation
        if target is None:
            return np.zeros(self.size, dtype=np.float32)

        to_target = target.center_position - np.asarray(beak_tip, dtype=float)
        direction = normalize(to_target)
        away = -normalize(target.up_vector)

        observation = np.concatenate([
            quat_normalize(rotation),
            direction,
            [np.dot(direction, away)],
            [np.dot(normalize(beak_forward), away)],
            [np.linalg.norm(to_target) / self.arena_diameter],
        ])
        return require_length(observation, self.size, "Flight observation").astype(np.float32)


class HandObservationEncoder:
    """Observation of the hand, its joints and the grasp target"""

    def __init__(self, n_joints: int, max_episode_time: Optional[float]):
        self.n_joints = n_joints
        self.max_episode_time = max_episode_time
        self.size = hand_observation_size(n_joints)

    def encode(self, wrist_position: np.ndarray, wrist_rotation: np.ndarray,
               target_position: np.ndarray, tip_position: np.ndarray,
               joint_rotations: Sequence[np.ndarray], grabbed: bool,
               elapsed: float) -> np.ndarray:
        pitch, yaw, roll = euler_from_quat(wrist_rotation)
        euler = np.array([wrap_angle(pitch), wrap_angle(yaw), wrap_angle(roll)]) / 180.0

        target_position = np.asarray(target_position, dtype=float)
        relative = target_position - np.asarray(tip_position, dtype=float)

        # Without an episode time limit the clock feature stays at zero
        clock = elapsed / self.max_episode_time if self.max_episode_time else 0.0

        observation = np.concatenate([
            np.asarray(wrist_position, dtype=float),
            euler,
            target_position,
            relative,
            np.concatenate([quat_normalize(q) for q in joint_rotations]) if len(joint_rotations) else [],
            [np.linalg.norm(relative)],
            [1.0 if grabbed else 0.0],
            [clock],
        ])
        return require_length(observation, self.size, "Hand observation").astype(np.float32)
