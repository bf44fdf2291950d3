"""
NectarHand Environments
=======================
Gymnasium wrappers around the two agents.

One `step()` is one policy decision: the same action is applied for
`decision_period` physics ticks (fewer if the episode ends first) and the
rewards of those ticks are summed. A timeout is reported as truncation,
every other end reason as termination.
"""

from typing import Any, Dict, Optional, Tuple

import numpy as np
import gymnasium as gym
from gymnasium import spaces

from .agents import FlyerAgent, HandAgent
from .config import SimulationConfig, AgentKind, create_flight_config, create_hand_config
from .contracts import (
    FLIGHT_ACTION_SIZE, FLIGHT_OBSERVATION_SIZE, AgentLifecycle, ContractViolationError,
    hand_action_size, hand_observation_size
)
from .physics import KinematicWorld
from .resources import build_flower_field


class NectarHandEnv(gym.Env):
    """Shared reset/step loop; subclasses build the world and the agent"""

    metadata = {"render_modes": []}

    def __init__(self, config: SimulationConfig, render_mode: Optional[str] = None):
        super().__init__()
        config.validate()
        self.config = config
        self.render_mode = render_mode

        self.world: Optional[KinematicWorld] = None
        self.agent: Optional[AgentLifecycle] = None
        self.steps = 0

        self._setup_spaces()

    def _setup_spaces(self):
        raise NotImplementedError

    def _build(self, rng: np.random.Generator):
        raise NotImplementedError

    def reset(self, seed: Optional[int] = None, options: Optional[Dict] = None) -> Tuple[np.ndarray, Dict]:
        """Reset the episode; a new seed also rebuilds the world"""
        if seed is None and self.agent is None:
            seed = self.config.seed
        super().reset(seed=seed)

        if self.agent is None or seed is not None:
            self.world = KinematicWorld(self.config.physics, self.config.arena)
            self._build(self.np_random)
            self.agent.initialize()

        self.agent.on_episode_begin()
        self.steps = 0
        return self.agent.collect_observations(), self._get_info()

    def step(self, action: np.ndarray) -> Tuple[np.ndarray, float, bool, bool, Dict]:
        if self.agent is None:
            raise ContractViolationError("reset() must be called before step()")
        if self.agent.episode.is_ended:
            raise ContractViolationError("step() called on an ended episode; call reset() first")

        reward = 0.0
        dt = self.config.physics.fixed_delta_time
        for _ in range(self.config.physics.decision_period):
            self.agent.on_action_received(action)
            events = self.world.step(dt)
            reward += self.agent.on_physics_tick(events)
            if self.agent.episode.is_ended:
                break

        self.steps += 1
        ended = self.agent.episode.is_ended
        truncated = ended and self.agent.episode.is_truncation
        terminated = ended and not truncated
        return self.agent.collect_observations(), float(reward), terminated, truncated, self._get_info()

    def _get_info(self) -> Dict[str, Any]:
        info = self.agent.info()
        info["decision_steps"] = self.steps
        return info

    def render(self):
        return None


class NectarFlightEnv(NectarHandEnv):
    """Flyer feeding on a procedurally placed flower field"""

    def __init__(self, config: Optional[SimulationConfig] = None, render_mode: Optional[str] = None):
        config = config or create_flight_config()
        if config.agent_kind != AgentKind.FLIGHT:
            raise ValueError(f"NectarFlightEnv needs a flight config, got {config.agent_kind.value}")
        super().__init__(config, render_mode)
        self.field = None

    def _setup_spaces(self):
        self.observation_space = spaces.Box(-np.inf, np.inf, shape=(FLIGHT_OBSERVATION_SIZE,),
                                            dtype=np.float32)
        self.action_space = spaces.Box(-1.0, 1.0, shape=(FLIGHT_ACTION_SIZE,), dtype=np.float32)

    def _build(self, rng: np.random.Generator):
        self.field = build_flower_field(self.world, self.config.arena, rng)
        self.agent = FlyerAgent(self.config, self.world, self.field, rng)


class HandGraspEnv(NectarHandEnv):
    """Articulated hand grasping a single target"""

    def __init__(self, config: Optional[SimulationConfig] = None, render_mode: Optional[str] = None):
        config = config or create_hand_config()
        if config.agent_kind != AgentKind.HAND:
            raise ValueError(f"HandGraspEnv needs a hand config, got {config.agent_kind.value}")
        super().__init__(config, render_mode)

    def _setup_spaces(self):
        n_joints = self.config.hand.n_joints
        self.observation_space = spaces.Box(-np.inf, np.inf, shape=(hand_observation_size(n_joints),),
                                            dtype=np.float32)
        self.action_space = spaces.Box(-1.0, 1.0, shape=(hand_action_size(n_joints),), dtype=np.float32)

    def _build(self, rng: np.random.Generator):
        self.agent = HandAgent(self.config, self.world, rng)


def make_env(config: SimulationConfig) -> NectarHandEnv:
    """Environment matching a config's agent kind"""
    if config.agent_kind == AgentKind.HAND:
        return HandGraspEnv(config)
    return NectarFlightEnv(config)
