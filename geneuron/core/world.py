"""
World (Simulation Environment) for the Geneuron simulator.

Holds the continuous toroidal plane, the ordered list of creatures and the
food field, together with the seeded random generator shared by everything
that needs randomness. Provides the per-tick neighbour snapshot and the
spawning helpers used at start-up and by the population floor.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from geneuron.core.agent import Agent, AgentSummary
from geneuron.core.config import SimConfig
from geneuron.core.food import FoodField
from geneuron.utils.spatial import (
    pairwise_toroidal_distances,
    random_point,
    random_point_near,
)


class World:
    """
    The simulation world: a 2D torus with creatures and food.

    Agents live in an ordered list. Indices into it are only meaningful
    within one tick; use `Agent.id` to follow a creature across ticks.

    Attributes:
        config: Simulation configuration.
        width: Plane width.
        height: Plane height.
        rng: Seeded random generator.
        agents: Living agents, oldest first.
        food: The food field.
        elapsed_time: Simulated seconds since start.
        generation: floor(elapsed_time / generation_interval).
    """

    def __init__(self, config: SimConfig, rng: Optional[np.random.Generator] = None):
        """
        Initialize an empty world from a configuration.

        Args:
            config: Simulation configuration.
            rng: Random generator. None = seeded from config.world.seed.
        """
        self.config = config
        self.width = float(config.world.width)
        self.height = float(config.world.height)
        self.rng = rng if rng is not None else np.random.default_rng(config.world.seed)

        self.elapsed_time: float = 0.0
        self.generation: int = 0

        self.agents: list[Agent] = []
        self.food = FoodField(self.width, self.height, config.food, self.rng, initial_count=0)

    @property
    def bounds(self) -> tuple[float, float]:
        return (self.width, self.height)

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize_population(self, count: Optional[int] = None) -> None:
        """
        Create the founding population at uniformly random positions.

        Args:
            count: Number of agents. If None, uses config.population.initial_count.
        """
        if count is None:
            count = self.config.population.initial_count
        for _ in range(count):
            self.spawn_agent()

    def initialize_food(self, count: Optional[int] = None) -> None:
        """Place the initial food items. None = config.food.initial_count."""
        if count is None:
            count = self.config.food.initial_count
        for _ in range(count):
            if self.food.spawn_random(self.rng) is None:
                break

    # ------------------------------------------------------------------
    # Agent management
    # ------------------------------------------------------------------

    def add_agent(self, agent: Agent) -> None:
        """Append an agent and fold it onto the plane."""
        agent.physics.wrap(self.bounds)
        self.agents.append(agent)

    def spawn_agent(self, position: Optional[tuple[float, float]] = None) -> Agent:
        """
        Create and add a random founder (generation 0).

        Args:
            position: (x, y). None = uniform random point.
        """
        if position is None:
            position = random_point(self.width, self.height, self.rng)
        agent = Agent.create_random(position[0], position[1], self.config, self.rng)
        self.add_agent(agent)
        return agent

    def spawn_agent_near_population(self) -> Agent:
        """
        Add a random founder next to a randomly chosen living agent.

        Falls back to a uniform position when the world is empty.
        """
        if not self.agents:
            return self.spawn_agent()
        anchor = self.agents[int(self.rng.integers(0, len(self.agents)))]
        position = random_point_near(
            anchor.physics.x, anchor.physics.y,
            self.config.population.spawn_spread,
            self.width, self.height,
            self.rng,
        )
        return self.spawn_agent(position)

    def remove_agents(self, indices: Sequence[int]) -> list[Agent]:
        """
        Remove agents by index (de-duplicated, highest index first).

        Returns:
            The removed agents.
        """
        removed = []
        for index in sorted(set(indices), reverse=True):
            removed.append(self.agents.pop(index))
        return removed

    def truncate_agents(self, limit: int) -> list[Agent]:
        """Drop the newest agents beyond `limit`. Returns the dropped agents."""
        if len(self.agents) <= limit:
            return []
        dropped = self.agents[limit:]
        del self.agents[limit:]
        return dropped

    # ------------------------------------------------------------------
    # Snapshots and spatial queries
    # ------------------------------------------------------------------

    def agent_positions(self) -> NDArray[np.float64]:
        """(N, 2) array of agent positions."""
        if not self.agents:
            return np.empty((0, 2), dtype=np.float64)
        return np.array([a.position for a in self.agents], dtype=np.float64)

    def agent_summaries(self) -> list[AgentSummary]:
        """Read-only summaries of every agent, indexed by list position."""
        return [a.summary(i) for i, a in enumerate(self.agents)]

    def distance_matrix(self) -> NDArray[np.float64]:
        """(N, N) toroidal distances between all agents."""
        return pairwise_toroidal_distances(self.agent_positions(), self.width, self.height)

    def neighbours(
        self,
        index: int,
        summaries: Sequence[AgentSummary],
        distances: NDArray[np.float64],
        radius: float,
    ) -> list[AgentSummary]:
        """
        Summaries of the agents within `radius` of agent `index` (self excluded).

        Args:
            index: Querying agent's index.
            summaries: Snapshot from `agent_summaries`.
            distances: Matrix from `distance_matrix`, same snapshot.
            radius: Sensor radius (inclusive).
        """
        if len(summaries) < 2:
            return []
        row = distances[index]
        return [summaries[j] for j in np.flatnonzero(row <= radius) if j != index]

    def colliding_pairs(
        self,
        radius: float,
        exclude: Sequence[int] = (),
    ) -> list[tuple[int, int]]:
        """
        Index pairs (i < j) of agents closer than twice `radius`, using
        current positions.

        Args:
            radius: Body radius.
            exclude: Indices to leave out (e.g. agents already marked dead).
        """
        if len(self.agents) < 2:
            return []
        distances = self.distance_matrix()
        skip = set(exclude)
        rows, cols = np.nonzero(np.triu(distances < 2.0 * radius, k=1))
        return [
            (int(i), int(j)) for i, j in zip(rows, cols)
            if i not in skip and j not in skip
        ]

    # ------------------------------------------------------------------
    # Resize
    # ------------------------------------------------------------------

    def resize(self, width: float, height: float) -> None:
        """
        Change the plane size, rescaling agent and food positions
        proportionally so every entity keeps its relative place.

        Raises:
            ValueError: If either dimension is not positive.
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Plane size must be positive, got {width}x{height}")
        sx, sy = width / self.width, height / self.height
        self.width, self.height = float(width), float(height)
        self.config.world.width = self.width
        self.config.world.height = self.height
        for agent in self.agents:
            agent.physics.position *= (sx, sy)
            agent.physics.wrap(self.bounds)
        self.food.resize(self.width, self.height)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def agent_count(self) -> int:
        return len(self.agents)

    @property
    def food_count(self) -> int:
        return len(self.food)

    @property
    def is_extinct(self) -> bool:
        return len(self.agents) == 0

    def __repr__(self) -> str:
        return (
            f"World({self.width:g}x{self.height:g}, t={self.elapsed_time:.2f}, "
            f"gen={self.generation}, agents={len(self.agents)}, food={len(self.food)})"
        )
