"""
NectarHand Geometry Helpers
===========================
Small vector and rotation toolkit shared by every subsystem.

Conventions:
- World axes: +X right, +Y up, +Z forward
- Rotations are unit quaternions stored as numpy arrays in (x, y, z, w) order
- Euler angles are degrees, applied roll (Z) first, then pitch (X), then yaw (Y),
  i.e. the intrinsic "YXZ" sequence [yaw, pitch, roll]
"""

import numpy as np
from typing import Tuple
from scipy.spatial.transform import Rotation, Slerp


WORLD_RIGHT = np.array([1.0, 0.0, 0.0])
WORLD_UP = np.array([0.0, 1.0, 0.0])
WORLD_FORWARD = np.array([0.0, 0.0, 1.0])
IDENTITY = np.array([0.0, 0.0, 0.0, 1.0])

# Vectors shorter than this normalize to zero
_EPSILON = 1e-5


def vec3(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> np.ndarray:
    """Build a float64 3-vector"""
    return np.array([x, y, z], dtype=float)


def normalize(v: np.ndarray) -> np.ndarray:
    """Unit vector along v, or the zero vector when v is (nearly) zero"""
    v = np.asarray(v, dtype=float)
    norm = np.linalg.norm(v)
    if norm > _EPSILON:
        return v / norm
    return np.zeros_like(v)


def distance(a: np.ndarray, b: np.ndarray) -> float:
    """Euclidean distance between two points"""
    return float(np.linalg.norm(np.asarray(a, dtype=float) - np.asarray(b, dtype=float)))


def clamp01(value: float) -> float:
    return float(min(max(value, 0.0), 1.0))


def move_towards(current: float, target: float, max_delta: float) -> float:
    """
    Move current toward target by at most max_delta.

    Lands exactly on target once within reach, so repeated calls form a
    linear ramp rather than an exponential approach.
    """
    if abs(target - current) <= max_delta:
        return float(target)
    return float(current + np.sign(target - current) * max_delta)


def _unsigned(angle: float) -> float:
    wrapped = float(angle) % 360.0
    # Tiny negative inputs round up to exactly 360
    return 0.0 if wrapped >= 360.0 else wrapped


def wrap_angle(angle: float) -> float:
    """Wrap degrees into (-180, 180]"""
    wrapped = float(angle) % 360.0
    if wrapped > 180.0:
        wrapped -= 360.0
    return wrapped


# =============================================================================
# ROTATIONS
# =============================================================================

def quat_from_euler(pitch: float, yaw: float, roll: float = 0.0) -> np.ndarray:
    """Quaternion from (pitch, yaw, roll) degrees"""
    return Rotation.from_euler("YXZ", [yaw, pitch, roll], degrees=True).as_quat()


def euler_from_quat(q: np.ndarray) -> Tuple[float, float, float]:
    """
    (pitch, yaw, roll) degrees of a quaternion, each in [0, 360).

    The [0, 360) range mirrors what engine transforms report, so callers
    that need signed angles must wrap explicitly.
    """
    yaw, pitch, roll = Rotation.from_quat(q).as_euler("YXZ", degrees=True)
    return _unsigned(pitch), _unsigned(yaw), _unsigned(roll)


def quat_multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Hamilton product a * b (apply b first, then a)"""
    return (Rotation.from_quat(a) * Rotation.from_quat(b)).as_quat()


def quat_normalize(q: np.ndarray) -> np.ndarray:
    q = np.asarray(q, dtype=float)
    norm = np.linalg.norm(q)
    if norm < _EPSILON:
        return IDENTITY.copy()
    return q / norm


def rotate(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rotate vector v by quaternion q"""
    return Rotation.from_quat(q).apply(np.asarray(v, dtype=float))


def forward_of(q: np.ndarray) -> np.ndarray:
    return rotate(q, WORLD_FORWARD)


def up_of(q: np.ndarray) -> np.ndarray:
    return rotate(q, WORLD_UP)


def right_of(q: np.ndarray) -> np.ndarray:
    return rotate(q, WORLD_RIGHT)


def angle_axis(angle: float, axis: np.ndarray) -> np.ndarray:
    """Quaternion rotating `angle` degrees about `axis`"""
    axis = normalize(axis)
    if not np.any(axis):
        return IDENTITY.copy()
    return Rotation.from_rotvec(axis * np.radians(angle)).as_quat()


def angle_between(a: np.ndarray, b: np.ndarray) -> float:
    """Smallest rotation angle in degrees taking quaternion a onto b"""
    relative = Rotation.from_quat(a).inv() * Rotation.from_quat(b)
    return float(np.degrees(relative.magnitude()))


def slerp(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
    """Spherical interpolation along the shortest arc, t clamped to [0, 1]"""
    t = clamp01(t)
    if t <= 0.0:
        return np.asarray(a, dtype=float).copy()
    if t >= 1.0:
        return np.asarray(b, dtype=float).copy()
    interpolator = Slerp([0.0, 1.0], Rotation.from_quat([a, b]))
    return interpolator([t]).as_quat()[0]


def look_rotation(forward: np.ndarray, up: np.ndarray = WORLD_UP) -> np.ndarray:
    """
    Rotation whose forward axis points along `forward` with its up axis as
    close to `up` as possible.

    A zero forward vector yields the identity. When forward is parallel to
    up, the world right axis is used to complete the basis.
    """
    f = normalize(forward)
    if not np.any(f):
        return IDENTITY.copy()

    r = np.cross(np.asarray(up, dtype=float), f)
    if np.linalg.norm(r) < _EPSILON:
        r = WORLD_RIGHT - np.dot(WORLD_RIGHT, f) * f
        if np.linalg.norm(r) < _EPSILON:
            r = WORLD_FORWARD - np.dot(WORLD_FORWARD, f) * f
    r = normalize(r)
    u = np.cross(f, r)

    basis = np.column_stack([r, u, f])
    return Rotation.from_matrix(basis).as_quat()


def yaw_rotation(yaw: float) -> np.ndarray:
    """Rotation of `yaw` degrees about world up"""
    return quat_from_euler(0.0, yaw, 0.0)
