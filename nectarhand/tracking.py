"""
NectarHand Nearest Target Tracking
==================================
Keeps a handle (an index into the resource field) on the closest node that
still has yield. The tracker never owns a node and re-resolves the handle
through the field on every access.
"""

import logging
from typing import Optional

import numpy as np

from .contracts import ResourceFieldPort, ResourceNodeView
from .geometry import distance

logger = logging.getLogger("Tracking")


class NearestTargetTracker:
    """Nearest-with-yield selection over a resource field"""

    def __init__(self, field: ResourceFieldPort):
        self.field = field
        self.index: Optional[int] = None

    @property
    def target(self) -> Optional[ResourceNodeView]:
        if self.index is None:
            return None
        return self.field.node_at(self.index)

    def clear(self):
        self.index = None

    def update(self, reference_point: np.ndarray) -> Optional[ResourceNodeView]:
        """
        Rescan the field in order and return the nearest node with yield.

        The held target is only replaced by a node with yield, and only when
        the held one has run dry or the candidate is strictly closer.
        Distances are measured to each node's `position`.
        """
        previous = self.index

        for index, node in enumerate(self.field):
            if not node.has_yield:
                continue
            if self.index is None:
                self.index = index
                continue

            current = self.field.node_at(self.index)
            if not current.has_yield:
                self.index = index
            elif distance(node.position, reference_point) < distance(current.position, reference_point):
                self.index = index

        if self.index is not None and not self.field.node_at(self.index).has_yield:
            self.index = None

        if self.index != previous:
            logger.debug(f"Nearest target changed: {previous} -> {self.index}")
        return self.target

    def refresh_if_depleted(self, reference_point: np.ndarray) -> Optional[ResourceNodeView]:
        """Rescan only when the held target has run dry"""
        target = self.target
        if target is not None and not target.has_yield:
            return self.update(reference_point)
        return target

    def distance_to(self, reference_point: np.ndarray) -> Optional[float]:
        target = self.target
        if target is None:
            return None
        return distance(target.position, reference_point)
