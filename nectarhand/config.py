"""
NectarHand Configuration
========================
Complete configuration system for the arena, both agent variants,
spawning, reward shaping and episode limits.

All distances are world units (meters), angles are degrees and times are
seconds of simulated time.
"""

from dataclasses import dataclass, field, fields, is_dataclass, asdict
from typing import Dict, List, Optional, Tuple, Union, Any, get_origin, get_args
from enum import Enum
from pathlib import Path
import json


class AgentKind(Enum):
    """Embodied agent variants"""
    FLIGHT = "flight"
    HAND = "hand"


class SpawnMode(Enum):
    """Where the spawn sampler draws candidate poses"""
    TARGET_RELATIVE = "target_relative"  # In front of a random resource node
    ARENA_RELATIVE = "arena_relative"    # Random ring around the arena center


class SpawnExhaustionPolicy(Enum):
    """What to do when every spawn attempt overlapped something"""
    PLACE_ANYWAY = "place_anyway"  # Use the last candidate, flagged unsafe
    ABORT = "abort"                # Raise SpawnExhaustedError


class EpisodeStatus(Enum):
    """Episode lifecycle states"""
    RUNNING = "running"
    ENDED = "ended"


class EndReason(Enum):
    """Why an episode left the RUNNING state"""
    GOAL = "goal"
    TIMEOUT = "timeout"
    OUT_OF_BOUNDS = "out_of_bounds"
    BOUNDARY_COLLISION = "boundary_collision"


@dataclass
class ArenaConfig:
    """Arena bounds and procedural flower layout"""
    # Bounds
    center: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    diameter: float = 20.0  # Used to normalize observed distances

    # Plants (each plant carries several flowers around a stem)
    n_plants: int = 6
    plant_ring: Tuple[float, float] = (2.0, 7.5)  # Radial placement band
    plant_stem_radius: float = 0.15
    flowers_per_plant: Tuple[int, int] = (3, 5)  # Inclusive range
    flower_height: Tuple[float, float] = (0.6, 2.4)
    flower_offset: float = 0.35  # Horizontal distance from the stem axis
    flower_elevation: Tuple[float, float] = (-20.0, 50.0)  # Tilt of the up axis

    # Flower colliders
    flower_radius: float = 0.05   # Solid petal collider
    nectar_radius: float = 0.02   # Trigger the beak feeds from
    nectar_offset: float = 0.03   # Nectar center along the flower up axis

    # Loose obstacles
    n_rocks: int = 4
    rock_radius: Tuple[float, float] = (0.3, 0.7)


@dataclass
class PhysicsConfig:
    """Fixed-timestep stepping and the kinematic adapter's body model"""
    fixed_delta_time: float = 0.02  # 50 physics ticks per second
    decision_period: int = 5  # Physics ticks per policy decision

    gravity: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    linear_drag: float = 2.0
    angular_drag: float = 0.05

    # Articulated joint drives approach their target at this rate
    joint_drive_speed: float = 720.0  # deg/s


@dataclass
class FlightConfig:
    """Nectar-seeking flyer"""
    move_force: float = 2.0
    pitch_speed: float = 100.0  # deg/s at full smoothed input
    yaw_speed: float = 100.0
    max_pitch_angle: float = 80.0
    smoothing_rate: float = 2.0  # Max change of smoothed input per second

    # Body
    body_mass: float = 1.0
    body_radius: float = 0.04
    beak_tip_offset: Tuple[float, float, float] = (0.0, 0.0, 0.09)
    beak_probe_radius: float = 0.01

    # Feeding
    beak_tip_radius: float = 0.008  # Max beak-to-nectar distance that counts
    feed_amount: float = 0.01  # Requested per physics tick of contact

    # Training-mode spawn mix
    spawn_in_front_probability: float = 0.5


@dataclass
class FingerSpec:
    """One finger: a chain of joints hanging off the wrist"""
    name: str
    n_joints: int
    base_offset: Tuple[float, float, float]
    base_rotation: Tuple[float, float, float] = (0.0, 0.0, 0.0)  # (pitch, yaw, roll)


def default_finger_layout() -> List[FingerSpec]:
    """Four-finger hand with 14 articulated joints"""
    return [
        FingerSpec("thumb", 4, (-0.2, 0.0, 0.0), (0.0, 0.0, 30.0)),
        FingerSpec("index", 4, (-0.15, 0.0, 0.4)),
        FingerSpec("middle", 3, (0.0, 0.0, 0.45)),
        FingerSpec("ring", 3, (0.15, 0.0, 0.4)),
    ]


@dataclass
class HandConfig:
    """Grasping hand"""
    fingers: List[FingerSpec] = field(default_factory=default_finger_layout)
    first_segment_length: float = 0.25
    segment_length: float = 0.2
    hand_tip_offset: Tuple[float, float, float] = (0.0, 0.0, 0.5)
    tip_probe_radius: float = 0.05

    # Actuation
    joint_speed: float = 100.0  # Slerp rate for joints without a drive
    max_joint_angle: float = 45.0
    wrist_move_speed: float = 1.0  # units/s at full input
    wrist_turn_speed: float = 90.0  # deg/s at full input
    use_joint_drives: bool = True

    # Grasp detection
    grab_distance: float = 0.3
    check_distance: float = 0.2
    min_fingers_for_grab: int = 3

    # Episode placement
    initial_wrist_position: Tuple[float, float, float] = (0.0, 1.0, 0.0)
    wrist_jitter: Tuple[float, float, float] = (2.0, 1.0, 2.0)
    initial_target_position: Tuple[float, float, float] = (2.0, 1.5, 2.0)
    target_jitter_low: Tuple[float, float, float] = (-3.0, 0.0, -3.0)
    target_jitter_high: Tuple[float, float, float] = (3.0, 2.0, 3.0)
    target_radius: float = 0.15
    target_mass: float = 0.5

    @property
    def n_joints(self) -> int:
        return sum(finger.n_joints for finger in self.fingers)


@dataclass
class SpawnConfig:
    """Rejection-sampled agent placement"""
    spawn_radius: float = 0.05  # Clearance sphere around the candidate
    max_attempts: int = 100
    exhaustion_policy: SpawnExhaustionPolicy = SpawnExhaustionPolicy.PLACE_ANYWAY

    # Target-relative mode
    front_distance: Tuple[float, float] = (0.1, 0.2)

    # Arena-relative mode
    height: Tuple[float, float] = (1.2, 2.5)
    radius: Tuple[float, float] = (2.0, 7.0)
    pitch: Tuple[float, float] = (-60.0, 60.0)
    yaw: Tuple[float, float] = (-180.0, 180.0)


@dataclass
class FlightRewardConfig:
    """Flyer reward shaping"""
    distance_weight: float = 0.0  # Per unit of beak-to-target distance
    nectar_reward: float = 0.01  # Per feeding contact
    alignment_bonus: float = 0.02  # Scaled by facing the flower head-on
    time_penalty: float = -0.001

    # Terminal
    goal_bonus: float = 10.0
    timeout_penalty: float = -1.0
    out_of_bounds_penalty: float = -2.0
    boundary_penalty: float = -0.5


@dataclass
class HandRewardConfig:
    """Hand reward shaping"""
    distance_weight: float = -0.001  # Per unit of tip-to-target distance
    reach_reward: float = 1.0  # Every tick within grab distance before the grasp
    grab_reward: float = 5.0
    touch_reward: float = 0.5  # Tip enters contact with the target
    time_penalty: float = -0.001

    # Terminal
    goal_bonus: float = 10.0
    timeout_penalty: float = -1.0
    out_of_bounds_penalty: float = -2.0


@dataclass
class EpisodeConfig:
    """Termination limits"""
    max_episode_time: Optional[float] = 30.0  # None plays forever
    out_of_bounds_distance: float = 10.0  # From the arena center
    end_on_boundary_collision: bool = True
    nectar_goal: Optional[float] = None  # Flyer goal; None disables it


@dataclass
class SimulationConfig:
    """Master configuration combining all subsystems"""
    agent_kind: AgentKind = AgentKind.FLIGHT
    training_mode: bool = True

    arena: ArenaConfig = field(default_factory=ArenaConfig)
    physics: PhysicsConfig = field(default_factory=PhysicsConfig)

    # Agents
    flight: FlightConfig = field(default_factory=FlightConfig)
    hand: HandConfig = field(default_factory=HandConfig)
    spawn: SpawnConfig = field(default_factory=SpawnConfig)

    # Learning signal
    flight_reward: FlightRewardConfig = field(default_factory=FlightRewardConfig)
    hand_reward: HandRewardConfig = field(default_factory=HandRewardConfig)
    episode: EpisodeConfig = field(default_factory=EpisodeConfig)

    # Run
    scenario_name: str = "default"
    seed: Optional[int] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def validate(self):
        """Validate configuration consistency"""
        assert self.arena.diameter > 0, "Arena diameter must be positive"
        assert self.physics.fixed_delta_time > 0, "Fixed delta time must be positive"
        assert self.physics.decision_period >= 1, "Decision period must be at least one tick"
        assert self.spawn.max_attempts >= 1, "Spawn sampler needs at least one attempt"
        assert self.spawn.spawn_radius > 0, "Spawn radius must be positive"
        assert 0 < self.flight.max_pitch_angle < 90, "Max pitch must be inside (0, 90)"
        assert 0 <= self.flight.spawn_in_front_probability <= 1, "Spawn probability must be in [0, 1]"
        assert self.hand.n_joints >= 1, "Hand needs at least one joint"
        assert self.hand.min_fingers_for_grab <= self.hand.n_joints, "Grasp needs more joints than the hand has"
        assert self.hand.max_joint_angle > 0, "Max joint angle must be positive"

        # Validate ranges
        for bounds in [self.spawn.front_distance, self.spawn.height, self.spawn.radius,
                       self.spawn.pitch, self.spawn.yaw, self.arena.plant_ring,
                       self.arena.flowers_per_plant, self.arena.flower_height,
                       self.arena.rock_radius]:
            assert bounds[0] <= bounds[1], f"Invalid bounds: {bounds}"

        if self.episode.max_episode_time is not None:
            assert self.episode.max_episode_time > 0, "Max episode time must be positive"

        return True


# =============================================================================
# FACTORIES
# =============================================================================

def create_flight_config() -> SimulationConfig:
    """Flyer in a flower arena, episodes of 100 s of simulated time"""
    config = SimulationConfig(agent_kind=AgentKind.FLIGHT, scenario_name="flight")
    config.episode.max_episode_time = 100.0
    config.episode.out_of_bounds_distance = config.arena.diameter
    return config


def create_hand_config() -> SimulationConfig:
    """Grasping hand with a falling target, episodes of 30 s"""
    config = SimulationConfig(agent_kind=AgentKind.HAND, scenario_name="hand")
    config.physics.gravity = (0.0, -9.81, 0.0)
    config.episode.max_episode_time = 30.0
    config.episode.out_of_bounds_distance = 10.0
    config.episode.end_on_boundary_collision = False
    return config


def create_default_config() -> SimulationConfig:
    """Create default configuration"""
    return create_flight_config()


def create_gameplay_config(agent_kind: AgentKind = AgentKind.FLIGHT) -> SimulationConfig:
    """Interactive play: no time limit, resources are not reset per episode"""
    if agent_kind == AgentKind.HAND:
        config = create_hand_config()
    else:
        config = create_flight_config()
    config.training_mode = False
    config.episode.max_episode_time = None
    config.scenario_name = f"{agent_kind.value}_gameplay"
    return config


def create_small_test_config(agent_kind: AgentKind = AgentKind.FLIGHT) -> SimulationConfig:
    """Create small configuration for testing"""
    if agent_kind == AgentKind.HAND:
        config = create_hand_config()
        config.episode.max_episode_time = 2.0
    else:
        config = create_flight_config()
        config.arena.n_plants = 3
        config.arena.n_rocks = 1
        config.episode.max_episode_time = 2.0
    config.scenario_name = f"{agent_kind.value}_small"
    config.seed = 7
    return config


# =============================================================================
# PERSISTENCE
# =============================================================================

def _encode(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _encode(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    return value


def config_to_dict(config: SimulationConfig) -> Dict[str, Any]:
    """JSON-ready dictionary of a configuration"""
    return _encode(asdict(config))


def _coerce(annotation: Any, value: Any) -> Any:
    if value is None:
        return None

    if isinstance(annotation, type):
        if is_dataclass(annotation):
            return _build(annotation, value)
        if issubclass(annotation, Enum):
            try:
                return annotation(value)
            except ValueError:
                raise ValueError(f"Unknown {annotation.__name__} value: {value!r}") from None
        return value

    origin = get_origin(annotation)
    args = get_args(annotation)
    if origin is Union:
        inner = [arg for arg in args if arg is not type(None)]
        return _coerce(inner[0], value)
    if origin is list:
        return [_coerce(args[0], item) for item in value]
    if origin is tuple:
        return tuple(value)
    return value


def _build(cls, data: Dict[str, Any]):
    known = {f.name: f for f in fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} keys: {sorted(unknown)}")
    kwargs = {name: _coerce(known[name].type, value) for name, value in data.items()}
    return cls(**kwargs)


def config_from_dict(data: Dict[str, Any]) -> SimulationConfig:
    """Rebuild a configuration; missing keys keep their defaults"""
    return _build(SimulationConfig, data)


def save_config(config: SimulationConfig, path: Union[str, Path]) -> Path:
    """Dump a configuration as JSON"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(config_to_dict(config), f, indent=2)
    return path


def load_config(path: Union[str, Path]) -> SimulationConfig:
    """Load and validate a JSON configuration"""
    with open(path) as f:
        config = config_from_dict(json.load(f))
    config.validate()
    return config
