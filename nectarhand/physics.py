"""
NectarHand Kinematic World
==========================
A small physics adapter implementing the physics port consumed by the core.

It is deliberately not a dynamics solver. What it provides:
- Point-mass rigid bodies with force/torque accumulation, gravity and drag
- Sphere colliders attached to bodies (with local offsets) or fixed in the world
- An analytic arena wall (vertical cylinder) and ground plane
- Enter/stay contact events for solid and trigger colliders
- Push-out of solid overlaps, sleep/wake, and rotational joint drives
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

import numpy as np
from scipy.spatial.transform import Rotation

from .config import ArenaConfig, PhysicsConfig
from .contracts import ContactEvent, ContactPhase, ContractViolationError
from .geometry import (
    IDENTITY, WORLD_RIGHT, WORLD_UP, angle_axis, normalize, quat_multiply,
    quat_normalize, rotate
)

logger = logging.getLogger("Physics")

BOUNDARY_TAG = "boundary"
GROUND_TAG = "ground"


class ColliderShape(Enum):
    SPHERE = "sphere"
    ARENA_WALL = "arena_wall"
    GROUND = "ground"


@dataclass(eq=False)
class Collider:
    """
    A contact surface.

    Body colliders store `offset` in the body's local frame; static colliders
    store their world-space center there. Identity (not value) equality keeps
    colliders usable as dictionary keys.
    """
    id: int
    tag: str
    radius: float = 0.0
    is_trigger: bool = False
    active: bool = True
    body_id: Optional[int] = None
    offset: np.ndarray = field(default_factory=lambda: np.zeros(3))
    shape: ColliderShape = ColliderShape.SPHERE

    @property
    def is_static(self) -> bool:
        return self.body_id is None


@dataclass
class Joint:
    """Single-axis rotational joint in its parent's local frame"""
    axis: np.ndarray
    has_drive: bool = True
    angle: float = 0.0  # Current drive angle, degrees
    target_angle: float = 0.0
    rotation: np.ndarray = field(default_factory=lambda: IDENTITY.copy())


@dataclass
class Body:
    """Point-mass rigid body"""
    id: int
    position: np.ndarray
    rotation: np.ndarray
    mass: float = 1.0
    use_gravity: bool = True
    is_kinematic: bool = False  # Moved only through set_pose
    sleeping: bool = False

    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    angular_velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))  # rad/s
    force: np.ndarray = field(default_factory=lambda: np.zeros(3))
    torque: np.ndarray = field(default_factory=lambda: np.zeros(3))

    colliders: List[Collider] = field(default_factory=list)
    joints: List[Joint] = field(default_factory=list)


class KinematicWorld:
    """
    Fixed-timestep world stepping bodies and reporting contacts.

    Every `step(dt)` integrates awake bodies, advances joint drives, resolves
    solid overlaps and returns the contact events of the tick. A pair that
    overlapped on the previous tick is reported as STAY, otherwise ENTER.
    """

    def __init__(self, physics: PhysicsConfig, arena: ArenaConfig):
        self.config = physics
        self.arena = arena
        self.gravity = np.asarray(physics.gravity, dtype=float)
        self.center = np.asarray(arena.center, dtype=float)
        self.wall_radius = arena.diameter / 2.0

        self._bodies: Dict[int, Body] = {}
        self._static: List[Collider] = []
        self._next_body_id = 0
        self._next_collider_id = 0
        self._touching: Set[Tuple[int, int]] = set()

        self.time = 0.0
        self.tick_count = 0

        self.wall = self._new_collider(BOUNDARY_TAG, shape=ColliderShape.ARENA_WALL)
        self.ground = self._new_collider(GROUND_TAG, shape=ColliderShape.GROUND)
        self._static.extend([self.wall, self.ground])

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    def _new_collider(self, tag: str, **kwargs) -> Collider:
        collider = Collider(id=self._next_collider_id, tag=tag, **kwargs)
        self._next_collider_id += 1
        return collider

    def add_body(self, position, rotation=None, mass: float = 1.0,
                 use_gravity: bool = True, is_kinematic: bool = False) -> int:
        """Create a body and return its id"""
        body_id = self._next_body_id
        self._next_body_id += 1
        self._bodies[body_id] = Body(
            id=body_id,
            position=np.asarray(position, dtype=float).copy(),
            rotation=quat_normalize(IDENTITY if rotation is None else rotation),
            mass=mass,
            use_gravity=use_gravity,
            is_kinematic=is_kinematic,
        )
        return body_id

    def add_collider(self, body_id: int, radius: float, tag: str,
                     offset=(0.0, 0.0, 0.0), is_trigger: bool = False) -> Collider:
        """Attach a sphere collider to a body at a local offset"""
        body = self._body(body_id)
        collider = self._new_collider(tag, radius=radius, is_trigger=is_trigger,
                                      body_id=body_id,
                                      offset=np.asarray(offset, dtype=float))
        body.colliders.append(collider)
        return collider

    def add_static_collider(self, center, radius: float, tag: str,
                            is_trigger: bool = False) -> Collider:
        """Add a fixed sphere collider at a world position"""
        collider = self._new_collider(tag, radius=radius, is_trigger=is_trigger,
                                      offset=np.asarray(center, dtype=float))
        self._static.append(collider)
        return collider

    def add_joint(self, body_id: int, has_drive: bool = True, axis=WORLD_RIGHT) -> int:
        """Add a single-axis joint to a body and return its index"""
        body = self._body(body_id)
        body.joints.append(Joint(axis=normalize(axis), has_drive=has_drive))
        return len(body.joints) - 1

    def _body(self, body_id: int) -> Body:
        try:
            return self._bodies[body_id]
        except KeyError:
            raise ContractViolationError(f"Unknown body id {body_id}") from None

    def _joint(self, body_id: int, joint: int) -> Joint:
        body = self._body(body_id)
        if not 0 <= joint < len(body.joints):
            raise ContractViolationError(f"Body {body_id} has no joint {joint}")
        return body.joints[joint]

    @property
    def static_colliders(self) -> List[Collider]:
        return list(self._static)

    # =========================================================================
    # PHYSICS PORT
    # =========================================================================

    def get_position(self, body_id: int) -> np.ndarray:
        return self._body(body_id).position.copy()

    def get_rotation(self, body_id: int) -> np.ndarray:
        return self._body(body_id).rotation.copy()

    def get_velocity(self, body_id: int) -> np.ndarray:
        return self._body(body_id).velocity.copy()

    def set_pose(self, body_id: int, position: Optional[np.ndarray] = None,
                 rotation: Optional[np.ndarray] = None) -> None:
        body = self._body(body_id)
        if position is not None:
            body.position = np.asarray(position, dtype=float).copy()
        if rotation is not None:
            body.rotation = quat_normalize(rotation)

    def apply_force(self, body_id: int, force: np.ndarray) -> None:
        self._body(body_id).force += np.asarray(force, dtype=float)

    def apply_torque(self, body_id: int, torque: np.ndarray) -> None:
        self._body(body_id).torque += np.asarray(torque, dtype=float)

    def zero_velocity(self, body_id: int) -> None:
        body = self._body(body_id)
        body.velocity = np.zeros(3)
        body.angular_velocity = np.zeros(3)

    def sleep(self, body_id: int) -> None:
        body = self._body(body_id)
        body.sleeping = True
        body.velocity = np.zeros(3)
        body.angular_velocity = np.zeros(3)

    def wake_up(self, body_id: int) -> None:
        self._body(body_id).sleeping = False

    def is_sleeping(self, body_id: int) -> bool:
        return self._body(body_id).sleeping

    def has_joint_drive(self, body_id: int, joint: int) -> bool:
        return self._joint(body_id, joint).has_drive

    def set_joint_drive_target(self, body_id: int, joint: int, angle: float) -> None:
        target = self._joint(body_id, joint)
        if not target.has_drive:
            raise ContractViolationError(f"Joint {joint} of body {body_id} has no drive")
        target.target_angle = float(angle)

    def get_joint_rotation(self, body_id: int, joint: int) -> np.ndarray:
        return self._joint(body_id, joint).rotation.copy()

    def set_joint_rotation(self, body_id: int, joint: int, rotation: np.ndarray) -> None:
        """Set a joint's local rotation; a driven joint restarts from its angle about the axis"""
        target = self._joint(body_id, joint)
        target.rotation = quat_normalize(rotation)
        spin = Rotation.from_quat(target.rotation).as_rotvec()
        target.angle = float(np.degrees(np.dot(spin, target.axis)))

    # =========================================================================
    # QUERIES
    # =========================================================================

    def collider_center(self, collider: Collider) -> np.ndarray:
        """World-space center of a sphere collider"""
        if collider.is_static:
            return collider.offset.copy()
        body = self._bodies[collider.body_id]
        return body.position + rotate(body.rotation, collider.offset)

    def _penetration(self, collider: Collider, center: np.ndarray,
                     radius: float) -> Tuple[float, np.ndarray]:
        """
        Depth and outward normal of a sphere (center, radius) against a collider.

        Depth <= 0 means no overlap. The normal points from the collider
        toward the sphere.
        """
        if collider.shape == ColliderShape.GROUND:
            return (self.center[1] + radius) - center[1], WORLD_UP.copy()

        if collider.shape == ColliderShape.ARENA_WALL:
            offset = center - self.center
            offset[1] = 0.0
            horizontal = float(np.linalg.norm(offset))
            depth = horizontal + radius - self.wall_radius
            return depth, -normalize(offset)

        other_center = self.collider_center(collider)
        delta = center - other_center
        gap = float(np.linalg.norm(delta))
        normal = normalize(delta)
        if not np.any(normal):
            normal = WORLD_UP.copy()
        return collider.radius + radius - gap, normal

    def closest_point(self, surface: Collider, point: np.ndarray) -> np.ndarray:
        """
        Closest point on (or inside) a collider to `point`.

        Points inside a sphere are returned unchanged.
        """
        point = np.asarray(point, dtype=float)
        if surface.shape == ColliderShape.GROUND:
            return np.array([point[0], self.center[1], point[2]])

        if surface.shape == ColliderShape.ARENA_WALL:
            offset = point - self.center
            offset[1] = 0.0
            direction = normalize(offset)
            if not np.any(direction):
                direction = np.array([0.0, 0.0, 1.0])
            on_wall = self.center + direction * self.wall_radius
            on_wall[1] = point[1]
            return on_wall

        center = self.collider_center(surface)
        delta = point - center
        if np.linalg.norm(delta) <= surface.radius:
            return point.copy()
        return center + normalize(delta) * surface.radius

    def _all_colliders(self, ignore_bodies: Iterable[int] = ()) -> List[Collider]:
        ignored = set(ignore_bodies)
        colliders = [c for c in self._static if c.active]
        for body in self._bodies.values():
            if body.id in ignored:
                continue
            colliders.extend(c for c in body.colliders if c.active)
        return colliders

    def overlap_sphere(self, center: np.ndarray, radius: float,
                       ignore_bodies: Iterable[int] = ()) -> List[Collider]:
        """Active colliders (triggers included) overlapping a query sphere"""
        center = np.asarray(center, dtype=float)
        hits = []
        for collider in self._all_colliders(ignore_bodies):
            depth, _ = self._penetration(collider, center, radius)
            if depth > 0.0:
                hits.append(collider)
        return hits

    # =========================================================================
    # STEPPING
    # =========================================================================

    def _integrate(self, body: Body, dt: float):
        if body.is_kinematic or body.sleeping:
            body.force = np.zeros(3)
            body.torque = np.zeros(3)
            return

        acceleration = body.force / body.mass
        if body.use_gravity:
            acceleration = acceleration + self.gravity
        body.velocity = (body.velocity + acceleration * dt) / (1.0 + self.config.linear_drag * dt)
        body.position = body.position + body.velocity * dt

        body.angular_velocity = (body.angular_velocity + body.torque / body.mass * dt) \
            / (1.0 + self.config.angular_drag * dt)
        spin = float(np.linalg.norm(body.angular_velocity))
        if spin > 0.0:
            turn = angle_axis(np.degrees(spin * dt), body.angular_velocity)
            body.rotation = quat_normalize(quat_multiply(turn, body.rotation))

        body.force = np.zeros(3)
        body.torque = np.zeros(3)

    def _advance_joints(self, body: Body, dt: float):
        max_delta = self.config.joint_drive_speed * dt
        for joint in body.joints:
            if not joint.has_drive:
                continue
            error = joint.target_angle - joint.angle
            joint.angle += float(np.clip(error, -max_delta, max_delta))
            joint.rotation = angle_axis(joint.angle, joint.axis)

    def _resolve_contacts(self) -> List[ContactEvent]:
        events = []
        touching = set()

        for body in self._bodies.values():
            if body.sleeping:
                continue
            for collider in body.colliders:
                if not collider.active:
                    continue
                for other in self._all_colliders(ignore_bodies=(body.id,)):
                    center = self.collider_center(collider)
                    depth, normal = self._penetration(other, center, collider.radius)
                    if depth <= 0.0:
                        continue

                    pair = (collider.id, other.id)
                    touching.add(pair)
                    phase = ContactPhase.STAY if pair in self._touching else ContactPhase.ENTER
                    events.append(ContactEvent(body.id, collider, other, phase))

                    if phase == ContactPhase.ENTER:
                        logger.debug(f"Contact enter: body {body.id} {collider.tag} -> {other.tag}")

                    if collider.is_trigger or other.is_trigger or body.is_kinematic:
                        continue

                    # Two dynamic bodies each take half of the separation
                    share = 1.0
                    if not other.is_static and not self._bodies[other.body_id].is_kinematic:
                        share = 0.5
                    body.position = body.position + normal * depth * share
                    inward = float(np.dot(body.velocity, normal))
                    if inward < 0.0:
                        body.velocity = body.velocity - normal * inward

        self._touching = touching
        return events

    def step(self, dt: Optional[float] = None) -> List[ContactEvent]:
        """Advance one fixed tick and return its contact events"""
        dt = self.config.fixed_delta_time if dt is None else dt
        for body in self._bodies.values():
            self._integrate(body, dt)
            if not body.sleeping:
                self._advance_joints(body, dt)

        events = self._resolve_contacts()
        self.time += dt
        self.tick_count += 1
        return events

    def reset_contacts(self):
        """Forget previous-tick contacts so the next overlaps report ENTER"""
        self._touching = set()
