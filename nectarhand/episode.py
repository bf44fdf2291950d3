"""
NectarHand Episode Lifecycle
============================
Two-state episode machine: RUNNING until a terminal condition holds, then
ENDED until the next `begin()`.

Terminal conditions, checked in priority order:
1. Goal met
2. Elapsed time above the cap
3. Distance from the arena center above the cap
4. Hard collision with the arena boundary (flyer only)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from .config import EndReason, EpisodeConfig, EpisodeStatus
from .contracts import ContractViolationError
from .geometry import distance

logger = logging.getLogger("Episode")


@dataclass
class EpisodeState:
    """Book-keeping of a single episode"""
    episode: int = 0
    yield_obtained: float = 0.0
    cumulative_reward: float = 0.0
    elapsed: float = 0.0
    ticks: int = 0
    grabbed: bool = False
    status: EpisodeStatus = EpisodeStatus.RUNNING
    end_reason: Optional[EndReason] = None


class EpisodeController:
    """Owns the EpisodeState and decides when an episode ends"""

    def __init__(self, config: EpisodeConfig, arena_center, dt: float, name: str = "agent"):
        self.config = config
        self.arena_center = np.asarray(arena_center, dtype=float)
        self.dt = dt
        self.name = name
        self.episodes_started = 0
        self.state = EpisodeState()

    @property
    def is_running(self) -> bool:
        return self.state.status == EpisodeStatus.RUNNING

    @property
    def is_ended(self) -> bool:
        return self.state.status == EpisodeStatus.ENDED

    @property
    def is_truncation(self) -> bool:
        """True when the episode was cut by the time limit rather than an outcome"""
        return self.state.end_reason == EndReason.TIMEOUT

    def begin(self):
        self.episodes_started += 1
        self.state = EpisodeState(episode=self.episodes_started)
        logger.info(f"[{self.name}] Episode {self.episodes_started} begins")

    def tick(self):
        """Advance the clock by one physics tick"""
        if self.is_ended:
            raise ContractViolationError(
                f"Episode {self.state.episode} has ended ({self.state.end_reason.value}); "
                f"begin a new episode before ticking"
            )
        self.state.elapsed += self.dt
        self.state.ticks += 1

    def record_yield(self, amount: float):
        self.state.yield_obtained += amount

    def record_reward(self, amount: float):
        self.state.cumulative_reward += amount

    def check_termination(self, goal_met: bool, position: np.ndarray,
                          boundary_collision: bool = False) -> Optional[EndReason]:
        """
        Evaluate terminal conditions and end the episode on the first that holds.

        Returns the reason exactly once, on the tick the episode ends, so the
        caller can emit the terminal reward a single time.
        """
        if self.is_ended:
            return None

        reason = None
        if goal_met:
            reason = EndReason.GOAL
        elif self.config.max_episode_time is not None and self.state.elapsed > self.config.max_episode_time:
            reason = EndReason.TIMEOUT
        elif distance(position, self.arena_center) > self.config.out_of_bounds_distance:
            reason = EndReason.OUT_OF_BOUNDS
        elif boundary_collision and self.config.end_on_boundary_collision:
            reason = EndReason.BOUNDARY_COLLISION

        if reason is not None:
            self.end(reason)
        return reason

    def end(self, reason: EndReason):
        if self.is_ended:
            raise ContractViolationError(f"Episode {self.state.episode} already ended")
        self.state.status = EpisodeStatus.ENDED
        self.state.end_reason = reason
        logger.debug(f"[{self.name}] Episode {self.state.episode} ended ({reason.value}) "
                     f"after {self.state.ticks} ticks")

    def summary(self) -> Dict[str, Any]:
        return {
            "episode": self.state.episode,
            "status": self.state.status.value,
            "end_reason": self.state.end_reason.value if self.state.end_reason else None,
            "elapsed": self.state.elapsed,
            "ticks": self.state.ticks,
            "yield_obtained": self.state.yield_obtained,
            "cumulative_reward": self.state.cumulative_reward,
            "grabbed": self.state.grabbed,
        }
