"""
NectarHand Architectural Contracts
==================================
Interface contracts that define the boundaries between the simulation core
and its external collaborators.

Key principle: the core never owns the physics engine, the resource layout
or the policy. It talks to them through the narrow ports below, so every
component can be exercised against a fake.

Contents:
- Fixed action/observation vector sizes per agent variant
- Contract violation errors
- Physics port, resource field port and agent lifecycle protocols
- Contact event records delivered by the physics port
"""

from typing import Protocol, Iterator, List, Optional, Sequence, Iterable, runtime_checkable
from dataclasses import dataclass
from enum import Enum
import numpy as np


# =============================================================================
# VECTOR LAYOUTS
# =============================================================================

# Flight: 3 force components + pitch delta + yaw delta
FLIGHT_ACTION_SIZE = 5

# Flight: rotation (4) + direction to target (3) + 2 alignments + relative distance
FLIGHT_OBSERVATION_SIZE = 10

# Hand: 3 linear + 3 angular wrist deltas, followed by one value per joint
HAND_WRIST_ACTIONS = 6

# Hand: wrist pose (6) + target (3) + tip-to-target (3) + distance + grabbed + time
HAND_FIXED_OBSERVATIONS = 15
HAND_OBSERVATIONS_PER_JOINT = 4


def hand_action_size(n_joints: int) -> int:
    return HAND_WRIST_ACTIONS + n_joints


def hand_observation_size(n_joints: int) -> int:
    return HAND_FIXED_OBSERVATIONS + HAND_OBSERVATIONS_PER_JOINT * n_joints


# =============================================================================
# ERRORS
# =============================================================================

class ContractViolationError(Exception):
    """Raised when a caller breaks an interface contract of the core."""
    pass


class SpawnExhaustedError(RuntimeError):
    """Raised when no collision-free spawn pose was found and the
    configured exhaustion policy is to abort."""

    def __init__(self, attempts: int, last_position: np.ndarray):
        self.attempts = attempts
        self.last_position = np.asarray(last_position, dtype=float)
        super().__init__(
            f"No safe spawn position after {attempts} attempts "
            f"(last candidate {np.round(self.last_position, 3).tolist()})"
        )


def require_length(vector: Sequence[float], expected: int, what: str) -> np.ndarray:
    """
    Guard: a vector crossing the policy boundary must have its fixed length.

    Returns the vector as a float64 array so callers can index it freely.
    """
    array = np.asarray(vector, dtype=float).reshape(-1)
    if array.shape[0] != expected:
        raise ContractViolationError(
            f"{what} must have exactly {expected} values, got {array.shape[0]}"
        )
    return array


# =============================================================================
# CONTACT EVENTS
# =============================================================================

class ContactPhase(Enum):
    """When a contact is reported relative to its lifetime"""
    ENTER = "enter"
    STAY = "stay"


@runtime_checkable
class ContactSurface(Protocol):
    """Anything the physics port can report a contact against."""
    id: int
    tag: str
    is_trigger: bool
    active: bool


@dataclass(frozen=True)
class ContactEvent:
    """
    One contact between a collider owned by a body and another surface.

    `collider` belongs to the body receiving the event; `other` is what it
    touched. Trigger contacts never push bodies apart.
    """
    body_id: int
    collider: ContactSurface
    other: ContactSurface
    phase: ContactPhase

    @property
    def is_trigger(self) -> bool:
        return self.collider.is_trigger or self.other.is_trigger


# =============================================================================
# PORTS
# =============================================================================

class PhysicsPort(Protocol):
    """
    The physics surface the core consumes.

    Bodies are addressed by integer ids handed out by the adapter. Poses are
    world-space positions and (x, y, z, w) quaternions.
    """

    def get_position(self, body_id: int) -> np.ndarray: ...

    def get_rotation(self, body_id: int) -> np.ndarray: ...

    def set_pose(self, body_id: int, position: Optional[np.ndarray] = None,
                 rotation: Optional[np.ndarray] = None) -> None: ...

    def apply_force(self, body_id: int, force: np.ndarray) -> None: ...

    def apply_torque(self, body_id: int, torque: np.ndarray) -> None: ...

    def zero_velocity(self, body_id: int) -> None: ...

    def overlap_sphere(self, center: np.ndarray, radius: float,
                       ignore_bodies: Iterable[int] = ()) -> List[ContactSurface]: ...

    def closest_point(self, surface: ContactSurface, point: np.ndarray) -> np.ndarray: ...

    def sleep(self, body_id: int) -> None: ...

    def wake_up(self, body_id: int) -> None: ...

    def is_sleeping(self, body_id: int) -> bool: ...

    def has_joint_drive(self, body_id: int, joint: int) -> bool: ...

    def set_joint_drive_target(self, body_id: int, joint: int, angle: float) -> None: ...

    def get_joint_rotation(self, body_id: int, joint: int) -> np.ndarray: ...

    def set_joint_rotation(self, body_id: int, joint: int, rotation: np.ndarray) -> None: ...

    def step(self, dt: float) -> List[ContactEvent]: ...


class ResourceNodeView(Protocol):
    """Read side of a depletable resource as seen by trackers and encoders."""
    position: np.ndarray
    center_position: np.ndarray
    up_vector: np.ndarray

    @property
    def has_yield(self) -> bool: ...

    def feed(self, amount: float) -> float: ...


class ResourceFieldPort(Protocol):
    """The collection of resource nodes in one arena."""
    center: np.ndarray
    diameter: float

    def __iter__(self) -> Iterator[ResourceNodeView]: ...

    def __len__(self) -> int: ...

    def node_at(self, index: int) -> ResourceNodeView: ...

    def node_for_surface(self, surface: ContactSurface) -> Optional[ResourceNodeView]: ...

    def reset_all(self) -> None: ...


@runtime_checkable
class AgentLifecycle(Protocol):
    """
    Ordered callbacks an external training harness invokes on an agent:
    initialize once, on_episode_begin per episode, on_action_received and
    on_physics_tick per physics tick, collect_observations per decision.
    """

    def initialize(self) -> None: ...

    def on_episode_begin(self) -> None: ...

    def on_action_received(self, action: Sequence[float]) -> np.ndarray: ...

    def on_physics_tick(self, events: List[ContactEvent]) -> float: ...

    def collect_observations(self) -> np.ndarray: ...


@runtime_checkable
class Policy(Protocol):
    """Maps an observation vector to an action vector in [-1, 1]."""

    def act(self, observation: np.ndarray) -> np.ndarray: ...
