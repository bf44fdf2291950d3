"""
NectarHand Action Controllers
=============================
Decode fixed-length continuous action vectors into physical commands.

Flight (5 values):
- [0:3] movement force, scaled by move_force
- [3]   pitch rate, [4] yaw rate, both smoothed before they are applied

Hand (6 + one per joint):
- [0:3] wrist translation, [3:6] wrist rotation (local euler)
- [6:]  joint target angles, scaled by max_joint_angle
"""

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from .config import FlightConfig, HandConfig
from .contracts import (
    FLIGHT_ACTION_SIZE, ContractViolationError, PhysicsPort, hand_action_size, require_length
)
from .geometry import (
    WORLD_RIGHT, angle_axis, euler_from_quat, move_towards, quat_from_euler,
    quat_multiply, slerp, wrap_angle
)


@dataclass
class ControlState:
    """Per-episode actuation memory of an agent"""
    smooth_pitch: float = 0.0
    smooth_yaw: float = 0.0
    joint_targets: np.ndarray = field(default_factory=lambda: np.zeros(0))
    frozen: bool = False

    def reset(self):
        self.smooth_pitch = 0.0
        self.smooth_yaw = 0.0
        self.joint_targets = np.zeros_like(self.joint_targets)


class ActionController:
    """
    Shared decode path: length check, clipping, freeze handling.

    Subclasses implement `_decode` for an already validated action.
    """

    action_size = 0
    label = "Action"

    def __init__(self, physics: PhysicsPort, body_id: int, dt: float, training_mode: bool):
        self.physics = physics
        self.body_id = body_id
        self.dt = dt
        self.training_mode = training_mode
        self.state = ControlState()

    @property
    def frozen(self) -> bool:
        return self.state.frozen

    def apply(self, action: Sequence[float]) -> np.ndarray:
        """
        Validate and apply one action for one physics tick.

        Returns the clipped action. A frozen controller validates but applies
        nothing.
        """
        action = require_length(action, self.action_size, f"{self.label} action")
        action = np.clip(action, -1.0, 1.0)
        if self.state.frozen:
            return action
        self._decode(action)
        return action

    def _decode(self, action: np.ndarray):
        raise NotImplementedError

    def reset(self):
        self.state.reset()

    def freeze(self):
        """Stop acting and put the body to sleep (gameplay only)"""
        if self.training_mode:
            raise ContractViolationError("Freeze/unfreeze is not supported in training mode")
        self.state.frozen = True
        self.physics.sleep(self.body_id)

    def unfreeze(self):
        if self.training_mode:
            raise ContractViolationError("Freeze/unfreeze is not supported in training mode")
        self.state.frozen = False
        self.state.smooth_pitch = 0.0
        self.state.smooth_yaw = 0.0
        self.physics.wake_up(self.body_id)


class FlightController(ActionController):
    """Force plus smoothed pitch/yaw for the flyer"""

    action_size = FLIGHT_ACTION_SIZE
    label = "Flight"

    def __init__(self, physics: PhysicsPort, body_id: int, config: FlightConfig,
                 dt: float, training_mode: bool = True):
        super().__init__(physics, body_id, dt, training_mode)
        self.config = config

    def _decode(self, action: np.ndarray):
        self.physics.apply_force(self.body_id, action[0:3] * self.config.move_force)

        # Rate inputs ramp linearly, so a released stick decays over 0.5 s
        step = self.config.smoothing_rate * self.dt
        self.state.smooth_pitch = move_towards(self.state.smooth_pitch, action[3], step)
        self.state.smooth_yaw = move_towards(self.state.smooth_yaw, action[4], step)

        pitch, yaw, _ = euler_from_quat(self.physics.get_rotation(self.body_id))

        pitch = wrap_angle(pitch + self.state.smooth_pitch * self.dt * self.config.pitch_speed)
        pitch = float(np.clip(pitch, -self.config.max_pitch_angle, self.config.max_pitch_angle))
        yaw = yaw + self.state.smooth_yaw * self.dt * self.config.yaw_speed

        self.physics.set_pose(self.body_id, rotation=quat_from_euler(pitch, yaw, 0.0))


class HandController(ActionController):
    """Wrist deltas plus per-joint target angles for the hand"""

    label = "Hand"

    def __init__(self, physics: PhysicsPort, body_id: int, config: HandConfig,
                 n_joints: int, dt: float, training_mode: bool = True):
        super().__init__(physics, body_id, dt, training_mode)
        self.config = config
        self.n_joints = n_joints
        self.action_size = hand_action_size(n_joints)
        self.state.joint_targets = np.zeros(n_joints)

    def _decode(self, action: np.ndarray):
        position = self.physics.get_position(self.body_id)
        rotation = self.physics.get_rotation(self.body_id)

        position = position + action[0:3] * self.config.wrist_move_speed * self.dt
        turn = action[3:6] * self.config.wrist_turn_speed * self.dt
        rotation = quat_multiply(rotation, quat_from_euler(turn[0], turn[1], turn[2]))
        self.physics.set_pose(self.body_id, position=position, rotation=rotation)

        limit = self.config.max_joint_angle
        for j in range(self.n_joints):
            target = float(np.clip(action[6 + j] * limit, -limit, limit))
            self.state.joint_targets[j] = target
            self._drive_joint(j, target)

    def _drive_joint(self, joint: int, angle: float):
        if self.physics.has_joint_drive(self.body_id, joint):
            self.physics.set_joint_drive_target(self.body_id, joint, angle)
            return

        # Joints without a drive are eased toward the target rotation
        current = self.physics.get_joint_rotation(self.body_id, joint)
        goal = angle_axis(angle, WORLD_RIGHT)
        self.physics.set_joint_rotation(self.body_id, joint,
                                        slerp(current, goal, self.dt * self.config.joint_speed))
