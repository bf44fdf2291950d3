"""
NectarHand
==========
Simulation core of a reinforcement-learning training environment in which
embodied agents work a bounded arena:

- a nectar-seeking flyer that feeds on depletable flowers
- an articulated hand that has to reach and grasp a target

The core covers resource depletion, nearest-target tracking, rejection
sampled spawning, action decoding, observation assembly, reward shaping and
the episode lifecycle. Physics is consumed through a narrow port; a small
kinematic adapter is included so everything runs end to end.

Modules:
--------
- config: Configuration dataclasses, enums, factories and JSON persistence
- contracts: Vector sizes, errors and the physics/resource ports
- geometry: Vector and quaternion helpers
- physics: KinematicWorld, the bundled physics adapter
- resources: ResourceNode, ResourceField and the flower layout builder
- tracking: Nearest-target tracker
- spawn: Rejection spawn sampler
- kinematics: Hand forward kinematics and grasp evidence
- control: Flight and hand action controllers
- observation: Flight and hand observation encoders
- rewards: Flight and hand reward shapers
- episode: Episode state machine
- heuristics: Manual input and baseline policies
- agents: FlyerAgent and HandAgent
- environment: Gymnasium environments
- main: CLI and simulation runner

Example Usage:
--------------
>>> from nectarhand import create_flight_config, NectarFlightEnv
>>> env = NectarFlightEnv(create_flight_config())
>>> obs, info = env.reset(seed=0)
>>> obs, reward, terminated, truncated, info = env.step(env.action_space.sample())
"""

__version__ = "1.0.0"
__author__ = "NectarHand Team"

# Configuration
from .config import (
    SimulationConfig,
    ArenaConfig,
    PhysicsConfig,
    FlightConfig,
    HandConfig,
    FingerSpec,
    SpawnConfig,
    FlightRewardConfig,
    HandRewardConfig,
    EpisodeConfig,
    AgentKind,
    SpawnMode,
    SpawnExhaustionPolicy,
    EpisodeStatus,
    EndReason,
    create_default_config,
    create_flight_config,
    create_hand_config,
    create_gameplay_config,
    create_small_test_config,
    config_to_dict,
    save_config,
    load_config,
)

# Contracts
from .contracts import ContractViolationError, SpawnExhaustedError

# Core
from .resources import ResourceNode, ResourceField, build_flower_field
from .tracking import NearestTargetTracker
from .spawn import SpawnSampler, SpawnResult
from .control import FlightController, HandController, ControlState
from .observation import FlightObservationEncoder, HandObservationEncoder
from .rewards import FlightRewardShaper, HandRewardShaper
from .episode import EpisodeController, EpisodeState
from .physics import KinematicWorld
from .kinematics import HandModel
from .heuristics import FlightHeuristicInput, HandHeuristicInput, RandomPolicy, IdlePolicy

# Agents and environments
from .agents import FlyerAgent, HandAgent
from .environment import NectarFlightEnv, HandGraspEnv, make_env

__all__ = [
    # Config
    "SimulationConfig",
    "ArenaConfig",
    "PhysicsConfig",
    "FlightConfig",
    "HandConfig",
    "FingerSpec",
    "SpawnConfig",
    "FlightRewardConfig",
    "HandRewardConfig",
    "EpisodeConfig",
    "AgentKind",
    "SpawnMode",
    "SpawnExhaustionPolicy",
    "EpisodeStatus",
    "EndReason",
    "create_default_config",
    "create_flight_config",
    "create_hand_config",
    "create_gameplay_config",
    "create_small_test_config",
    "config_to_dict",
    "save_config",
    "load_config",
    # Contracts
    "ContractViolationError",
    "SpawnExhaustedError",
    # Core
    "ResourceNode",
    "ResourceField",
    "build_flower_field",
    "NearestTargetTracker",
    "SpawnSampler",
    "SpawnResult",
    "FlightController",
    "HandController",
    "ControlState",
    "FlightObservationEncoder",
    "HandObservationEncoder",
    "FlightRewardShaper",
    "HandRewardShaper",
    "EpisodeController",
    "EpisodeState",
    "KinematicWorld",
    "HandModel",
    "FlightHeuristicInput",
    "HandHeuristicInput",
    "RandomPolicy",
    "IdlePolicy",
    # Agents and environments
    "FlyerAgent",
    "HandAgent",
    "NectarFlightEnv",
    "HandGraspEnv",
    "make_env",
]
