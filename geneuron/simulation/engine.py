"""
Simulation Engine - main tick loop for the Geneuron simulator.

Every tick, each creature senses its neighbourhood from a read-only snapshot,
thinks, and moves. Consumption, reproduction and death are queued while the
agents are processed and applied afterwards in one batch, so list indices
stay valid for the whole agent pass. Population bounds, the food field and
the clock are advanced last.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Callable, Optional

from geneuron.core.agent import Agent, reset_agent_id_counter
from geneuron.core.config import SimConfig
from geneuron.core.food import FoodItem
from geneuron.core.world import World
from geneuron.simulation.population import PopulationManager


# ---------------------------------------------------------------------------
# Tick statistics - lightweight counters for one tick
# ---------------------------------------------------------------------------

@dataclass
class TickStats:
    """Statistics collected during a single tick."""
    births: int = 0
    deaths_starvation: int = 0
    deaths_ceiling: int = 0
    repopulated: int = 0
    food_eaten: int = 0
    food_spawned: int = 0
    food_energy_consumed: float = 0.0
    energy_spent: float = 0.0


# ---------------------------------------------------------------------------
# Run result
# ---------------------------------------------------------------------------

@dataclass
class RunResult:
    """Result of a complete headless run."""
    config: SimConfig
    seed: int
    total_ticks: int = 0
    elapsed_time: float = 0.0
    final_generation: int = 0
    final_agent_count: int = 0
    final_food_count: int = 0
    total_births: int = 0
    total_deaths: int = 0
    extinct: bool = False
    extinction_time: Optional[float] = None
    tick_stats_history: list[TickStats] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

class Simulation:
    """
    Core simulation engine.

    Attributes:
        config: Simulation configuration (a private copy).
        world: Agents, food and clock.
        population: Floor/ceiling enforcement and generation counter.
        rng: Master random generator (shared with the world).
        tick_count: Ticks executed (no-op ticks are not counted).
        tick_stats: Statistics for the last executed tick.
        on_tick: Optional callback invoked after each tick(tick_count, sim).
        on_generation: Optional callback invoked when a generation boundary
                       is crossed(generation, sim).
    """

    def __init__(
        self,
        width: Optional[float] = None,
        height: Optional[float] = None,
        config: Optional[SimConfig] = None,
        seed: Optional[int] = None,
    ):
        """
        Create a populated simulation.

        Args:
            width, height: Plane size. None = config.world values.
            config: Simulation configuration. None = defaults.
            seed: Random seed override. None = use config.world.seed.

        Raises:
            ValueError: If the resulting configuration is invalid.
        """
        self.config = config.copy() if config is not None else SimConfig()
        if width is not None:
            self.config.world.width = float(width)
        if height is not None:
            self.config.world.height = float(height)
        if seed is not None:
            self.config.world.seed = seed

        errors = self.config.validate()
        if errors:
            raise ValueError("Invalid configuration:\n" + "\n".join(f"  - {e}" for e in errors))

        reset_agent_id_counter()
        self.world = World(self.config)
        self.rng = self.world.rng
        self.population = PopulationManager(self.config)

        self.world.initialize_population()
        self.world.initialize_food()

        self.tick_count: int = 0
        self.paused: bool = False
        self.tick_stats = TickStats()
        self._accumulated_tick_stats: list[TickStats] = []

        # Callbacks
        self.on_tick: Optional[Callable[[int, "Simulation"], None]] = None
        self.on_generation: Optional[Callable[[int, "Simulation"], None]] = None

    # ------------------------------------------------------------------
    # Time control
    # ------------------------------------------------------------------

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def toggle_pause(self) -> bool:
        """Flip the paused flag. Returns the new value."""
        self.paused = not self.paused
        return self.paused

    def resize(self, width: float, height: float) -> None:
        """Resize the plane between ticks; positions scale proportionally."""
        self.world.resize(width, height)

    def update(self, dt: float) -> TickStats:
        """
        Advance the simulation by `dt` seconds.

        A zero step, or any step while paused, changes nothing.

        Raises:
            ValueError: If dt is negative.
        """
        if dt < 0:
            raise ValueError(f"dt must be >= 0, got {dt}")
        if dt == 0 or self.paused:
            return TickStats()
        return self._tick(dt)

    def step(self, dt: Optional[float] = None) -> TickStats:
        """
        Advance one tick even while paused (single-stepping).

        Args:
            dt: Time step. None = config.run.dt.
        """
        if dt is None:
            dt = self.config.run.dt
        if dt < 0:
            raise ValueError(f"dt must be >= 0, got {dt}")
        if dt == 0:
            return TickStats()
        return self._tick(dt)

    # ------------------------------------------------------------------
    # Core tick
    # ------------------------------------------------------------------

    def _tick(self, dt: float) -> TickStats:
        """
        Execute one simulation tick.

        Processing order:
          1. Decrement reproduction cooldowns
          2. Snapshot agent summaries and pairwise distances
          3. For each agent (list order):
             a. Sense, think, move, pay movement energy
             b. Claim food within eating radius (first claimant wins)
             c. Pair with an eligible partner; initiator pays at once
             d. Mark death if energy plus queued food <= death threshold
             e. After the pass, bounce touching agents off each other
                (only with physics.collisions)
          4. Apply: feed, remove eaten food, build children (partner pays),
             remove the dead, append the children
          5. Population floor, then ceiling
          6. Food field update and wrap
          7. Advance the clock and the generation counter
          8. Fire callbacks

        Returns:
            TickStats for this tick.
        """
        stats = TickStats()
        world = self.world
        config = self.config
        bounds = world.bounds
        agents = world.agents
        sensors = config.sensors
        death_threshold = config.energy.death_threshold
        max_energy = config.energy.max_energy

        # --- 1. Cooldowns ---
        for agent in agents:
            agent.reproduction_cooldown = max(0.0, agent.reproduction_cooldown - dt)

        # --- 2. Read-only snapshot ---
        summaries = world.agent_summaries()
        distances = world.distance_matrix()

        claimed_food: dict[int, int] = {}        # food index -> agent index
        food_credit: dict[int, list[FoodItem]] = {}
        mating: list[tuple[int, int]] = []
        mated: set[int] = set()
        dead: set[int] = set()

        # --- 3. Agent pass ---
        for i, agent in enumerate(agents):
            nearby_agents = world.neighbours(i, summaries, distances, sensors.agent_radius)
            nearby_food = [
                item.position
                for _, item in world.food.find_nearby(summaries[i].position, sensors.food_radius)
            ]

            # --- 3a. Sense, think, move ---
            stats.energy_spent += agent.update(dt, nearby_food, nearby_agents, bounds)
            agent.physics.wrap(bounds)
            if agent.energy > max_energy:
                agent.energy = max_energy

            # --- 3b. Food claims ---
            credit = 0.0
            for idx, item in world.food.find_nearby(agent.position, sensors.eating_radius):
                if idx in claimed_food:
                    continue
                claimed_food[idx] = i
                food_credit.setdefault(i, []).append(item)
                credit += item.energy_value

            # --- 3c. Mating ---
            if i not in mated:
                for other in nearby_agents:
                    if other.index in mated:
                        continue
                    if agent.can_reproduce_with(other, bounds):
                        mating.append((i, other.index))
                        mated.add(i)
                        mated.add(other.index)
                        agent.pay_reproduction_cost()
                        break

            # --- 3d. Death check ---
            if agent.energy + credit <= death_threshold:
                dead.add(i)

        # --- 3e. Collisions (post-move positions) ---
        if config.physics.collisions:
            for i, j in world.colliding_pairs(config.physics.collision_radius, exclude=dead):
                agents[i].physics.collide_with(agents[j].physics, self.rng)

        # --- 4. Apply queued events ---
        for i, items in food_credit.items():
            for item in items:
                stats.food_energy_consumed += agents[i].eat(item.energy_value)
                stats.food_eaten += 1
        world.food.remove_many(claimed_food.keys())

        children: list[Agent] = []
        for i, j in mating:
            if i in dead or j in dead:
                continue
            children.append(agents[i].create_offspring(agents[j], self.rng, bounds))
            agents[j].pay_reproduction_cost()

        stats.deaths_starvation = len(world.remove_agents(list(dead)))
        for child in children:
            world.add_agent(child)
        stats.births = len(children)

        # --- 5. Population bounds ---
        stats.repopulated = self.population.enforce_floor(world, dt)
        stats.deaths_ceiling = self.population.enforce_ceiling(world)

        # --- 6. Food field ---
        stats.food_spawned = world.food.update(dt, self.rng)
        world.food.wrap_positions()

        # --- 7. Clock ---
        world.elapsed_time += dt
        crossed = self.population.advance_generation(world)
        self.tick_count += 1

        # --- 8. Store stats and fire callbacks ---
        self.tick_stats = stats
        self._accumulated_tick_stats.append(stats)

        if crossed and self.on_generation is not None:
            self.on_generation(world.generation, self)
        if self.on_tick is not None:
            self.on_tick(self.tick_count, self)

        return stats

    # ------------------------------------------------------------------
    # Multi-tick run
    # ------------------------------------------------------------------

    def run(
        self,
        duration: Optional[float] = None,
        dt: Optional[float] = None,
        stop_on_extinction: bool = True,
    ) -> RunResult:
        """
        Run headless for `duration` simulated seconds in fixed steps.

        Runs regardless of the paused flag. Extinction can only happen when
        the population floor is 0; with a floor an empty world is refilled
        by repopulation instead.

        Args:
            duration: Seconds to simulate. None = config.run.duration.
            dt: Time step. None = config.run.dt.
            stop_on_extinction: Stop early when no agents remain.

        Returns:
            RunResult with summary statistics.
        """
        if duration is None:
            duration = self.config.run.duration
        if dt is None:
            dt = self.config.run.dt
        if dt <= 0:
            raise ValueError(f"dt must be > 0, got {dt}")

        result = RunResult(config=self.config, seed=self.config.world.seed)
        max_ticks = max(0, int(math.ceil(duration / dt - 1e-9)))

        history: list[TickStats] = []
        for _ in range(max_ticks):
            stats = self._tick(dt)
            history.append(stats)
            result.total_births += stats.births
            result.total_deaths += stats.deaths_starvation + stats.deaths_ceiling

            if self.world.is_extinct and self.config.population.floor == 0:
                result.extinct = True
                result.extinction_time = self.world.elapsed_time
                if stop_on_extinction:
                    break

        result.total_ticks = len(history)
        result.elapsed_time = self.world.elapsed_time
        result.final_generation = self.world.generation
        result.final_agent_count = self.world.agent_count
        result.final_food_count = self.world.food_count
        result.tick_stats_history = history
        return result

    # ------------------------------------------------------------------
    # Accumulated statistics helpers
    # ------------------------------------------------------------------

    def get_accumulated_stats(self) -> dict[str, float]:
        """
        Sum all tick stats from the current accumulation period.

        Returns:
            Dict of stat_name -> total_value.
        """
        totals: dict[str, float] = {f.name: 0 for f in fields(TickStats)}
        for stats in self._accumulated_tick_stats:
            for name in totals:
                totals[name] += getattr(stats, name)
        return totals

    def reset_accumulated_stats(self) -> list[TickStats]:
        """
        Reset and return the accumulated tick stats (e.g., at generation boundary).

        Returns:
            The accumulated stats before reset.
        """
        old = self._accumulated_tick_stats
        self._accumulated_tick_stats = []
        return old

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def agents(self) -> list[Agent]:
        return self.world.agents

    @property
    def foods(self) -> list[FoodItem]:
        return self.world.food.items

    @property
    def bounds(self) -> tuple[float, float]:
        return self.world.bounds

    @property
    def elapsed_time(self) -> float:
        return self.world.elapsed_time

    @property
    def generation(self) -> int:
        return self.world.generation

    @property
    def agent_count(self) -> int:
        return self.world.agent_count

    @property
    def is_extinct(self) -> bool:
        return self.world.is_extinct

    def agent_states(self) -> list[dict]:
        """Plain-data view of every agent, for renderers."""
        return [a.to_dict() for a in self.world.agents]

    def food_states(self) -> list[dict]:
        """Plain-data view of every food item, for renderers."""
        return [
            {"x": f.x, "y": f.y, "energy_value": f.energy_value, "size": f.size}
            for f in self.world.food.items
        ]

    def __repr__(self) -> str:
        return (
            f"Simulation(t={self.elapsed_time:.2f}, gen={self.generation}, "
            f"agents={self.agent_count}, food={self.world.food_count}, "
            f"paused={self.paused})"
        )
