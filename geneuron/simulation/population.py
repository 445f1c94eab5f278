"""
Population lifecycle manager for the Geneuron simulator.

Keeps the population between a floor and a ceiling and tracks the
generation counter:
  - Floor: while below `population.floor`, a batch of random founders is
    injected near existing agents every `repopulation_interval` seconds
  - Ceiling: the newest agents beyond `population.ceiling` are dropped
  - Generation: floor(elapsed_time / generation_interval), a display counter
    with no effect on selection
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from geneuron.core.config import SimConfig
from geneuron.core.world import World


# ---------------------------------------------------------------------------
# Population statistics
# ---------------------------------------------------------------------------

@dataclass
class PopulationStats:
    """Totals since the manager was created."""
    repopulated: int = 0
    repopulation_events: int = 0
    truncated: int = 0
    generations_completed: int = 0


# ---------------------------------------------------------------------------
# Population Manager
# ---------------------------------------------------------------------------

class PopulationManager:
    """
    Enforces population bounds and advances the generation counter.

    Attributes:
        config: Simulation configuration.
        repopulation_timer: Seconds accumulated since the last floor injection.
        stats: Running totals.
    """

    def __init__(self, config: SimConfig):
        self.config = config
        self.repopulation_timer: float = 0.0
        self.stats = PopulationStats()

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------

    def enforce_floor(self, world: World, dt: float) -> int:
        """
        Advance the repopulation timer and inject founders if due.

        Founders are placed near randomly chosen living agents, or uniformly
        when the world is empty. A batch never overshoots the floor.

        Args:
            world: The world to top up.
            dt: Time step in seconds.

        Returns:
            Number of agents added.
        """
        pop = self.config.population
        self.repopulation_timer += dt

        deficit = pop.floor - world.agent_count
        if deficit <= 0 or self.repopulation_timer < pop.repopulation_interval:
            return 0

        self.repopulation_timer = 0.0
        added = min(pop.repopulation_batch, deficit)
        for _ in range(added):
            world.spawn_agent_near_population()

        self.stats.repopulated += added
        self.stats.repopulation_events += 1
        return added

    def enforce_ceiling(self, world: World) -> int:
        """
        Truncate the population to `population.ceiling`, newest first.

        Returns:
            Number of agents dropped.
        """
        dropped = len(world.truncate_agents(self.config.population.ceiling))
        self.stats.truncated += dropped
        return dropped

    # ------------------------------------------------------------------
    # Generation counter
    # ------------------------------------------------------------------

    def generation_for(self, elapsed_time: float) -> int:
        """Generation number for a given simulated time."""
        return int(math.floor(elapsed_time / self.config.run.generation_interval))

    def advance_generation(self, world: World) -> int:
        """
        Recompute `world.generation` from `world.elapsed_time`.

        Returns:
            Number of generation boundaries crossed (0 on most ticks).
        """
        new_generation = self.generation_for(world.elapsed_time)
        crossed = max(0, new_generation - world.generation)
        world.generation = new_generation
        self.stats.generations_completed += crossed
        return crossed

    def __repr__(self) -> str:
        pop = self.config.population
        return (
            f"PopulationManager(floor={pop.floor}, ceiling={pop.ceiling}, "
            f"timer={self.repopulation_timer:.2f})"
        )
