"""
NectarHand Reward Shaping
=========================
Additive per-tick reward terms, applied in a fixed order:

1. Distance term (weighted distance to the current target)
2. Contact bonus (feeding for the flyer; touch, reach and grab for the hand)
3. Time penalty
4. Terminal bonus or penalty when the episode ends

Every call only adds. Totals are cleared by `reset()` at episode start.
"""

from collections import defaultdict
from typing import Dict

import numpy as np

from .config import EndReason, FlightRewardConfig, HandRewardConfig
from .geometry import clamp01, normalize


class RewardShaper:
    """Running reward total with a per-term breakdown"""

    def __init__(self):
        self.total = 0.0
        self.tick_total = 0.0
        self.breakdown: Dict[str, float] = defaultdict(float)

    def reset(self):
        self.total = 0.0
        self.tick_total = 0.0
        self.breakdown = defaultdict(float)

    def begin_tick(self):
        self.tick_total = 0.0

    def add(self, term: str, value: float) -> float:
        value = float(value)
        self.total += value
        self.tick_total += value
        self.breakdown[term] += value
        return value

    def terminal_value(self, reason: EndReason) -> float:
        raise NotImplementedError

    def terminal(self, reason: EndReason) -> float:
        return self.add(reason.value, self.terminal_value(reason))

    def summary(self) -> Dict[str, float]:
        return {"total": self.total, **dict(self.breakdown)}


class FlightRewardShaper(RewardShaper):
    """Flyer shaping: feeding contacts scaled by how squarely the flyer faces the flower"""

    def __init__(self, config: FlightRewardConfig):
        super().__init__()
        self.config = config

    def distance_term(self, distance: float) -> float:
        return self.add("distance", self.config.distance_weight * distance)

    def feed_bonus(self, forward: np.ndarray, node_up: np.ndarray) -> float:
        alignment = clamp01(np.dot(normalize(forward), -normalize(node_up)))
        return self.add("nectar", self.config.nectar_reward + self.config.alignment_bonus * alignment)

    def boundary_collision(self) -> float:
        """Non-terminal bump into the arena boundary"""
        return self.add("boundary", self.config.boundary_penalty)

    def time_penalty(self) -> float:
        return self.add("time", self.config.time_penalty)

    def terminal_value(self, reason: EndReason) -> float:
        return {
            EndReason.GOAL: self.config.goal_bonus,
            EndReason.TIMEOUT: self.config.timeout_penalty,
            EndReason.OUT_OF_BOUNDS: self.config.out_of_bounds_penalty,
            EndReason.BOUNDARY_COLLISION: self.config.boundary_penalty,
        }[reason]


class HandRewardShaper(RewardShaper):
    """Hand shaping: approach, touch, reach and grasp"""

    def __init__(self, config: HandRewardConfig):
        super().__init__()
        self.config = config

    def distance_term(self, distance: float) -> float:
        return self.add("distance", self.config.distance_weight * distance)

    def touch_bonus(self) -> float:
        return self.add("touch", self.config.touch_reward)

    def reach_bonus(self) -> float:
        return self.add("reach", self.config.reach_reward)

    def grab_bonus(self) -> float:
        return self.add("grab", self.config.grab_reward)

    def time_penalty(self) -> float:
        return self.add("time", self.config.time_penalty)

    def terminal_value(self, reason: EndReason) -> float:
        # The hand has no arena wall, so it never ends on a boundary collision
        return {
            EndReason.GOAL: self.config.goal_bonus,
            EndReason.TIMEOUT: self.config.timeout_penalty,
            EndReason.OUT_OF_BOUNDS: self.config.out_of_bounds_penalty,
            EndReason.BOUNDARY_COLLISION: 0.0,
        }[reason]
