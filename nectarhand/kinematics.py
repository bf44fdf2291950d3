"""
NectarHand Hand Kinematics
==========================
Forward kinematics of the articulated hand.

Each finger is a chain hanging off the wrist: the finger base sits at a
fixed offset in the wrist frame, the first joint a little further forward,
and every following joint one segment further along the previous joint's
rotated frame. Joint order is finger order, base to tip, which is also the
order of the per-joint action and observation entries.
"""

from typing import List, Sequence, Tuple

import numpy as np

from .config import HandConfig
from .geometry import WORLD_FORWARD, quat_from_euler, quat_multiply, rotate


class HandModel:
    """Joint layout and forward kinematics for one hand configuration"""

    def __init__(self, config: HandConfig):
        self.config = config
        self.joint_names: List[str] = []
        self.finger_of_joint: List[int] = []
        for finger_index, finger in enumerate(config.fingers):
            for j in range(finger.n_joints):
                self.joint_names.append(f"{finger.name}_{j + 1}")
                self.finger_of_joint.append(finger_index)

        self._finger_rotations = [quat_from_euler(*finger.base_rotation) for finger in config.fingers]
        self.tip_offset = np.asarray(config.hand_tip_offset, dtype=float)

    @property
    def n_joints(self) -> int:
        return len(self.joint_names)

    def tip_position(self, wrist_position: np.ndarray, wrist_rotation: np.ndarray) -> np.ndarray:
        """World position of the hand tip"""
        return np.asarray(wrist_position, dtype=float) + rotate(wrist_rotation, self.tip_offset)

    def joint_positions(self, wrist_position: np.ndarray, wrist_rotation: np.ndarray,
                        joint_rotations: Sequence[np.ndarray]) -> np.ndarray:
        """World positions of every joint, shape (n_joints, 3)"""
        wrist_position = np.asarray(wrist_position, dtype=float)
        positions = np.zeros((self.n_joints, 3))

        j = 0
        for finger, base_rotation in zip(self.config.fingers, self._finger_rotations):
            origin = wrist_position + rotate(wrist_rotation, finger.base_offset)
            frame = quat_multiply(wrist_rotation, base_rotation)
            segment = self.config.first_segment_length

            for _ in range(finger.n_joints):
                origin = origin + rotate(frame, WORLD_FORWARD * segment)
                positions[j] = origin
                frame = quat_multiply(frame, joint_rotations[j])
                segment = self.config.segment_length
                j += 1

        return positions

    def joints_near(self, point: np.ndarray, positions: np.ndarray, radius: float) -> int:
        """Number of joints strictly closer than `radius` to a point"""
        gaps = np.linalg.norm(positions - np.asarray(point, dtype=float), axis=1)
        return int(np.sum(gaps < radius))

    def grasp_evidence(self, tip: np.ndarray, target: np.ndarray,
                       positions: np.ndarray) -> Tuple[float, int]:
        """Tip-to-target distance and the number of joints closing on the target"""
        gap = float(np.linalg.norm(np.asarray(target, dtype=float) - tip))
        return gap, self.joints_near(target, positions, self.config.check_distance)

    def is_grasping(self, tip: np.ndarray, target: np.ndarray, positions: np.ndarray) -> bool:
        """Tip within grab distance with enough joints around the target"""
        gap, closing = self.grasp_evidence(tip, target, positions)
        return gap < self.config.grab_distance and closing >= self.config.min_fingers_for_grab
