"""
NectarHand Resources
====================
Depletable resource nodes and the field that owns them.

A node carries a yield in [0, 1] that only `feed` lowers and only `reset`
restores. Each node exposes two surfaces with an `active` flag: the contact
surface (the solid petal) and the yield surface (the nectar trigger agents
feed through). The contact surface switches off once the node is empty.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

import numpy as np

from .config import ArenaConfig
from .contracts import ContactSurface
from .geometry import WORLD_UP, normalize, vec3

logger = logging.getLogger("Resources")

FULL_AMOUNT = 1.0

NECTAR_TAG = "nectar"
FLOWER_TAG = "flower"
PLANT_TAG = "plant"
ROCK_TAG = "rock"

_surface_ids = itertools.count(start=1_000_000)


@dataclass(eq=False)
class Surface:
    """Contact surface for nodes that live outside a physics world"""
    id: int
    tag: str
    is_trigger: bool = False
    active: bool = True


class ResourceNode:
    """
    A single depletable resource (a flower).

    `position` is the node origin used for nearest-target distances;
    `center_position` is where the yield sits and what agents aim at.
    """

    def __init__(self, position, up_vector=WORLD_UP,
                 contact_surface: Optional[ContactSurface] = None,
                 yield_surface: Optional[ContactSurface] = None,
                 center_offset: float = 0.0):
        self.position = np.asarray(position, dtype=float).copy()
        self.up_vector = normalize(up_vector)
        self.center_position = self.position + self.up_vector * center_offset

        self.contact_surface = contact_surface or Surface(next(_surface_ids), FLOWER_TAG)
        self.yield_surface = yield_surface or Surface(next(_surface_ids), NECTAR_TAG, is_trigger=True)

        self.amount = FULL_AMOUNT

    @property
    def has_yield(self) -> bool:
        return self.amount > 0.0

    @property
    def is_active(self) -> bool:
        return self.contact_surface.active

    @property
    def fullness(self) -> float:
        return self.amount / FULL_AMOUNT

    def feed(self, amount: float) -> float:
        """
        Take up to `amount` from the node and return what was taken.

        The node is depleted by the full requested amount even when less was
        available, so the returned value can undercount the depletion caused.
        Negative requests are treated as zero.
        """
        amount = max(float(amount), 0.0)
        taken = float(np.clip(amount, 0.0, self.amount))

        self.amount -= amount
        if self.amount <= 0.0:
            self.amount = 0.0
            self.contact_surface.active = False

        return taken

    def reset(self):
        """Refill and reactivate both surfaces"""
        self.amount = FULL_AMOUNT
        self.contact_surface.active = True
        self.yield_surface.active = True

    def __repr__(self):
        return (f"ResourceNode(position={np.round(self.position, 3).tolist()}, "
                f"amount={self.amount:.3f})")


class ResourceField:
    """
    Ordered collection of resource nodes inside one arena.

    Node order is stable for the lifetime of the field, so an index is a
    valid handle to a node. Surfaces map back to their node by identity.
    """

    def __init__(self, center=(0.0, 0.0, 0.0), diameter: float = 20.0,
                 nodes: Optional[List[ResourceNode]] = None):
        self.center = np.asarray(center, dtype=float)
        self.diameter = float(diameter)
        self._nodes: List[ResourceNode] = []
        self._surface_index: Dict[ContactSurface, int] = {}
        for node in nodes or []:
            self.add_node(node)

    def add_node(self, node: ResourceNode) -> int:
        index = len(self._nodes)
        self._nodes.append(node)
        self._surface_index[node.contact_surface] = index
        self._surface_index[node.yield_surface] = index
        return index

    def __iter__(self) -> Iterator[ResourceNode]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def nodes(self) -> List[ResourceNode]:
        return list(self._nodes)

    def node_at(self, index: int) -> ResourceNode:
        return self._nodes[index]

    def node_for_surface(self, surface: ContactSurface) -> Optional[ResourceNode]:
        """Node owning a contact or yield surface, or None for foreign surfaces"""
        index = self._surface_index.get(surface)
        if index is None:
            return None
        return self._nodes[index]

    def reset_all(self):
        for node in self._nodes:
            node.reset()
        logger.debug(f"Reset {len(self._nodes)} resource nodes")

    def total_yield(self) -> float:
        return float(sum(node.amount for node in self._nodes))

    def count_with_yield(self) -> int:
        return sum(1 for node in self._nodes if node.has_yield)


def build_flower_field(world, arena: ArenaConfig, rng: np.random.Generator) -> ResourceField:
    """
    Populate a world with plants, flowers and rocks, and return the field.

    Each plant is a stem of stacked spheres carrying a few flowers around
    it. A flower faces outward from its stem, tilted by a random elevation.
    """
    center = np.asarray(arena.center, dtype=float)
    field = ResourceField(center=center, diameter=arena.diameter)

    for plant in range(arena.n_plants):
        # Even spread around the arena with some angular jitter
        heading = 2 * np.pi * (plant + rng.uniform(-0.3, 0.3)) / max(arena.n_plants, 1)
        ring = rng.uniform(*arena.plant_ring)
        stem_base = center + vec3(np.sin(heading) * ring, 0.0, np.cos(heading) * ring)

        n_flowers = int(rng.integers(arena.flowers_per_plant[0], arena.flowers_per_plant[1] + 1))
        heights = rng.uniform(*arena.flower_height, size=n_flowers)

        top = float(heights.max()) if n_flowers else arena.flower_height[0]
        radius = arena.plant_stem_radius
        for y in np.arange(radius, top - arena.flower_offset, radius):
            world.add_static_collider(stem_base + WORLD_UP * y, radius, PLANT_TAG)

        for k in range(n_flowers):
            around = 2 * np.pi * k / n_flowers + rng.uniform(-0.4, 0.4)
            outward = vec3(np.sin(around), 0.0, np.cos(around))
            elevation = np.radians(rng.uniform(*arena.flower_elevation))
            up = normalize(np.cos(elevation) * outward + np.sin(elevation) * WORLD_UP)

            position = stem_base + outward * arena.flower_offset + WORLD_UP * heights[k]
            petal = world.add_static_collider(position, arena.flower_radius, FLOWER_TAG)
            nectar = world.add_static_collider(position + up * arena.nectar_offset,
                                               arena.nectar_radius, NECTAR_TAG, is_trigger=True)
            field.add_node(ResourceNode(position, up, petal, nectar,
                                        center_offset=arena.nectar_offset))

    for _ in range(arena.n_rocks):
        heading = rng.uniform(0.0, 2 * np.pi)
        ring = rng.uniform(*arena.plant_ring)
        size = rng.uniform(*arena.rock_radius)
        world.add_static_collider(center + vec3(np.sin(heading) * ring, 0.0, np.cos(heading) * ring),
                                  size, ROCK_TAG)

    logger.info(f"Built flower field: {arena.n_plants} plants, {len(field)} flowers, "
                f"{arena.n_rocks} rocks")
    return field
