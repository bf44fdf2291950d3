"""
NectarHand Heuristic Control
============================
Action sources that are not a learned policy: manual key input for both
agents, plus the random and idle baselines used by the runner.

Key names are plain lowercase strings ("w", "space", "up", ...). Every
source produces the same action layout a policy would.
"""

from typing import Iterable, Optional

import numpy as np

from .contracts import FLIGHT_ACTION_SIZE, hand_action_size
from .geometry import forward_of, normalize, right_of, up_of


def _axis(keys: set, positive: str, negative: str) -> float:
    """+1 / -1 for a key pair; the positive key wins when both are held"""
    if positive in keys:
        return 1.0
    if negative in keys:
        return -1.0
    return 0.0


class FlightHeuristicInput:
    """
    Keyboard flight: W/S forward/back, A/D left/right, E/C up/down along the
    flyer's own axes; arrow keys pitch and yaw.
    """

    def action(self, keys: Iterable[str], rotation: np.ndarray) -> np.ndarray:
        keys = set(keys)
        forward = forward_of(rotation) * _axis(keys, "w", "s")
        # A steers left, so it wins over D when both are held
        side = right_of(rotation) * -_axis(keys, "a", "d")
        vertical = up_of(rotation) * _axis(keys, "e", "c")

        move = normalize(forward + side + vertical)
        action = np.zeros(FLIGHT_ACTION_SIZE)
        action[0:3] = move
        action[3] = _axis(keys, "up", "down")
        action[4] = -_axis(keys, "left", "right")
        return action


class HandHeuristicInput:
    """
    Keyboard hand: A/D, Q/E and W/S move the wrist along x, y and z; arrow
    keys turn it; holding space curls every finger.
    """

    def __init__(self, n_joints: int):
        self.n_joints = n_joints

    def action(self, keys: Iterable[str]) -> np.ndarray:
        keys = set(keys)
        action = np.zeros(hand_action_size(self.n_joints))
        action[0] = _axis(keys, "d", "a")
        action[1] = _axis(keys, "q", "e")
        action[2] = _axis(keys, "w", "s")
        action[3] = _axis(keys, "up", "down")
        action[4] = -_axis(keys, "left", "right")
        action[6:] = 1.0 if "space" in keys else 0.0
        return action


class RandomPolicy:
    """Uniform random actions in [-1, 1]"""

    def __init__(self, action_size: int, rng: Optional[np.random.Generator] = None):
        self.action_size = action_size
        self.rng = rng if rng is not None else np.random.default_rng()

    def act(self, observation: np.ndarray) -> np.ndarray:
        return self.rng.uniform(-1.0, 1.0, size=self.action_size)


class IdlePolicy:
    """All-zero actions: the agent drifts and its smoothing decays"""

    def __init__(self, action_size: int):
        self.action_size = action_size

    def act(self, observation: np.ndarray) -> np.ndarray:
        return np.zeros(self.action_size)
