"""
Food resources for the Geneuron simulator.

Food items are points on the toroidal plane carrying a variable energy
value. The FoodField keeps their count between a minimum and a maximum:
it refills uniformly when depleted and otherwise occasionally grows new
items next to existing ones, which produces patchy, clustered resources.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np
from numpy.typing import NDArray

from geneuron.core.config import FoodConfig
from geneuron.utils.spatial import (
    random_point,
    random_point_near,
    toroidal_distances_from,
    toroidal_wrap,
)


@dataclass(slots=True)
class FoodItem:
    """
    A food item on the plane.

    Attributes:
        x: Plane x-coordinate.
        y: Plane y-coordinate.
        energy_value: Energy granted to the creature that eats it.
    """
    x: float
    y: float
    energy_value: float

    @property
    def position(self) -> tuple[float, float]:
        """Position as (x, y) tuple."""
        return (self.x, self.y)

    @property
    def size(self) -> float:
        """Display radius hint; grows with energy value."""
        return 3.0 + 10.0 * self.energy_value

    def __repr__(self) -> str:
        return f"FoodItem(pos=({self.x:.1f},{self.y:.1f}), energy={self.energy_value:.3f})"


class FoodField:
    """
    Bounded collection of food items on the torus.

    Attributes:
        width, height: Plane dimensions.
        config: Food spawning parameters.
        items: Ordered list of FoodItem. Indices are only stable until the
               next removal.
    """

    def __init__(
        self,
        width: float,
        height: float,
        config: Optional[FoodConfig] = None,
        rng: Optional[np.random.Generator] = None,
        initial_count: Optional[int] = None,
    ):
        """
        Create a field and place the initial items uniformly.

        Args:
            width, height: Plane dimensions.
            config: Food config. None = defaults.
            rng: Random generator. Uses default if None.
            initial_count: Override config.initial_count.
        """
        self.width = width
        self.height = height
        self.config = config if config is not None else FoodConfig()
        self.items: list[FoodItem] = []

        if rng is None:
            rng = np.random.default_rng()
        if initial_count is None:
            initial_count = self.config.initial_count
        for _ in range(min(initial_count, self.config.max_count)):
            self.spawn_random(rng)

    # ------------------------------------------------------------------
    # Spawning
    # ------------------------------------------------------------------

    @property
    def bounds(self) -> tuple[float, float]:
        return (self.width, self.height)

    @property
    def is_full(self) -> bool:
        return len(self.items) >= self.config.max_count

    def _random_energy(self, rng: np.random.Generator) -> float:
        c = self.config
        if c.energy_min == c.energy_max:
            return float(c.energy_min)
        return float(rng.uniform(c.energy_min, c.energy_max))

    def add(self, item: FoodItem) -> bool:
        """
        Add an item unless the field is full.

        Returns:
            True if the item was added.
        """
        if self.is_full:
            return False
        item.x, item.y = toroidal_wrap(item.x, item.y, self.width, self.height)
        self.items.append(item)
        return True

    def spawn_random(self, rng: np.random.Generator) -> Optional[FoodItem]:
        """Spawn one item at a uniformly random position."""
        x, y = random_point(self.width, self.height, rng)
        item = FoodItem(x=x, y=y, energy_value=self._random_energy(rng))
        return item if self.add(item) else None

    def spawn_clustered(self, rng: np.random.Generator) -> Optional[FoodItem]:
        """
        Spawn one item near a randomly chosen existing item.

        Falls back to a uniform position when the field is empty.
        """
        if not self.items:
            return self.spawn_random(rng)
        parent = self.items[int(rng.integers(0, len(self.items)))]
        x, y = random_point_near(
            parent.x, parent.y,
            self.config.cluster_radius,
            self.width, self.height,
            rng,
        )
        item = FoodItem(x=x, y=y, energy_value=self._random_energy(rng))
        return item if self.add(item) else None

    def update(self, dt: float, rng: np.random.Generator) -> int:
        """
        Advance the field by one tick.

        Refills uniformly up to min_count when below it; otherwise, with
        probability cluster_chance, grows one clustered item. Never exceeds
        max_count.

        Args:
            dt: Time step (a zero step spawns nothing).
            rng: Random generator.

        Returns:
            Number of items spawned.
        """
        if dt <= 0:
            return 0

        spawned = 0
        if len(self.items) < self.config.min_count:
            while len(self.items) < self.config.min_count:
                if self.spawn_random(rng) is None:
                    break
                spawned += 1
        elif not self.is_full and rng.random() < self.config.cluster_chance:
            if self.spawn_clustered(rng) is not None:
                spawned += 1

        return spawned

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def positions(self) -> NDArray[np.float64]:
        """(N, 2) array of item positions."""
        if not self.items:
            return np.empty((0, 2), dtype=np.float64)
        return np.array([(f.x, f.y) for f in self.items], dtype=np.float64)

    def find_nearby(
        self,
        position: tuple[float, float] | NDArray[np.float64],
        radius: float,
    ) -> list[tuple[int, FoodItem]]:
        """
        All items within toroidal distance `radius` (inclusive).

        Args:
            position: Query point (x, y).
            radius: Search radius.

        Returns:
            List of (index, FoodItem), in index order.
        """
        if not self.items:
            return []
        distances = toroidal_distances_from(
            float(position[0]), float(position[1]),
            self.positions(),
            self.width, self.height,
        )
        return [(int(i), self.items[int(i)]) for i in np.flatnonzero(distances <= radius)]

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove(self, index: int) -> FoodItem:
        """
        Remove and return the item at `index`.

        Raises:
            IndexError: If index is out of range.
        """
        if not (0 <= index < len(self.items)):
            raise IndexError(f"Food index {index} out of range (0..{len(self.items) - 1})")
        return self.items.pop(index)

    def remove_many(self, indices: Iterable[int]) -> list[FoodItem]:
        """
        Remove several items; indices are de-duplicated and removed in
        descending order so earlier removals don't shift later ones.
        """
        return [self.remove(i) for i in sorted(set(indices), reverse=True)]

    def wrap_positions(self) -> None:
        """Fold every item back inside the plane bounds."""
        for item in self.items:
            item.x, item.y = toroidal_wrap(item.x, item.y, self.width, self.height)

    def resize(self, width: float, height: float) -> None:
        """
        Change the plane size, rescaling item positions proportionally.

        Raises:
            ValueError: If either dimension is not positive.
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Plane size must be positive, got {width}x{height}")
        sx, sy = width / self.width, height / self.height
        self.width, self.height = float(width), float(height)
        for item in self.items:
            item.x, item.y = item.x * sx, item.y * sy
        self.wrap_positions()

    def __len__(self) -> int:
        return len(self.items)

    def __repr__(self) -> str:
        return (
            f"FoodField(size={self.width:g}x{self.height:g}, items={len(self.items)}, "
            f"min={self.config.min_count}, max={self.config.max_count})"
        )
