"""
KPI Metrics collection for the Geneuron simulator.

MetricsCollector gathers per-generation Key Performance Indicators (KPIs)
from the simulation state and accumulated tick statistics. It produces a
flat dictionary per generation suitable for CSV export and analysis.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from geneuron.core.agent import Agent, BehaviorState, Gender
from geneuron.core.config import SimConfig
from geneuron.simulation.engine import Simulation


# ---------------------------------------------------------------------------
# MetricsCollector
# ---------------------------------------------------------------------------

class MetricsCollector:
    """
    Collects and computes KPIs per generation.

    Usage:
      1. At a generation boundary, call `collect(sim, sim.get_accumulated_stats())`
      2. Resulting dict is appended to `history`
      3. Call `get_history()` to retrieve all collected snapshots

    Attributes:
        config: Simulation configuration.
        history: List of KPI dicts, one per generation.
    """

    def __init__(self, config: SimConfig):
        self.config = config
        self.history: list[dict] = []

    def collect(
        self,
        sim: Simulation,
        tick_stats_totals: dict[str, float],
    ) -> dict:
        """
        Compute all KPIs for the current generation and append to history.

        Args:
            sim: Simulation (for live population stats).
            tick_stats_totals: Accumulated tick counters for this generation
                               (from sim.get_accumulated_stats()).

        Returns:
            Dict of KPI_name -> value.
        """
        kpis: dict = {}

        # --- Population ---
        agents = sim.agents
        kpis["generation"] = sim.generation
        kpis["elapsed_time"] = round(sim.elapsed_time, 4)
        kpis["agent_count"] = len(agents)
        kpis["extinction_flag"] = len(agents) == 0
        kpis["males"] = sum(1 for a in agents if a.gender is Gender.MALE)
        kpis["females"] = len(agents) - kpis["males"]

        # --- Births and deaths (from tick stats) ---
        kpis["births"] = int(tick_stats_totals.get("births", 0))
        kpis["repopulated"] = int(tick_stats_totals.get("repopulated", 0))
        kpis["deaths_starvation"] = int(tick_stats_totals.get("deaths_starvation", 0))
        kpis["deaths_ceiling"] = int(tick_stats_totals.get("deaths_ceiling", 0))
        kpis["deaths_total"] = kpis["deaths_starvation"] + kpis["deaths_ceiling"]

        # --- Energy statistics ---
        if agents:
            energies = np.array([a.energy for a in agents])
            kpis["avg_energy"] = float(np.mean(energies))
            kpis["median_energy"] = float(np.median(energies))
            kpis["min_energy"] = float(np.min(energies))
            kpis["max_energy"] = float(np.max(energies))
            kpis["std_energy"] = float(np.std(energies))
        else:
            kpis["avg_energy"] = 0.0
            kpis["median_energy"] = 0.0
            kpis["min_energy"] = 0.0
            kpis["max_energy"] = 0.0
            kpis["std_energy"] = 0.0

        # --- Lifetime statistics ---
        if agents:
            kpis["avg_age"] = float(np.mean([a.age for a in agents]))
            kpis["avg_fitness"] = float(np.mean([a.fitness for a in agents]))
            kpis["max_fitness"] = float(np.max([a.fitness for a in agents]))
            kpis["avg_speed"] = float(np.mean([a.physics.speed for a in agents]))
            kpis["max_lineage"] = int(max(a.generation for a in agents))
        else:
            kpis["avg_age"] = 0.0
            kpis["avg_fitness"] = 0.0
            kpis["max_fitness"] = 0.0
            kpis["avg_speed"] = 0.0
            kpis["max_lineage"] = 0

        # --- Behavior states ---
        for state in BehaviorState:
            kpis[f"state_{state.value}"] = sum(1 for a in agents if a.behavior_state is state)

        # --- Genetic diversity ---
        kpis["genetic_diversity"] = self._compute_genetic_diversity(agents)

        # --- Food stats ---
        kpis["food_spawned"] = int(tick_stats_totals.get("food_spawned", 0))
        kpis["food_eaten"] = int(tick_stats_totals.get("food_eaten", 0))
        kpis["food_energy_consumed"] = float(tick_stats_totals.get("food_energy_consumed", 0.0))
        kpis["food_available"] = sim.world.food_count
        kpis["energy_spent"] = float(tick_stats_totals.get("energy_spent", 0.0))

        self.history.append(kpis)
        return kpis

    # ------------------------------------------------------------------
    # Genetic diversity
    # ------------------------------------------------------------------

    def _compute_genetic_diversity(
        self,
        agents: list[Agent],
        max_sample: int = 100,
    ) -> float:
        """
        Compute mean pairwise Euclidean genome distance (sampled).

        For large populations, sample up to max_sample agents to keep
        computation tractable (O(N^2) pairwise comparisons).

        Args:
            agents: List of living agents.
            max_sample: Maximum agents to sample for pairwise comparison.

        Returns:
            Mean pairwise distance (float). 0.0 if < 2 agents.
        """
        if len(agents) < 2:
            return 0.0

        if len(agents) > max_sample:
            rng = np.random.default_rng(42)  # Fixed seed for reproducibility
            indices = rng.choice(len(agents), size=max_sample, replace=False)
            sampled = [agents[i] for i in indices]
        else:
            sampled = agents

        genomes = np.stack([a.genome for a in sampled])
        diff = genomes[:, None, :] - genomes[None, :, :]
        dist = np.sqrt(np.sum(diff * diff, axis=2))
        n = len(sampled)
        upper = np.triu_indices(n, k=1)
        return float(np.mean(dist[upper]))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_history(self) -> list[dict]:
        """Return all collected KPI snapshots."""
        return list(self.history)

    def get_last(self) -> Optional[dict]:
        """Return the last collected KPI snapshot, or None."""
        return self.history[-1] if self.history else None

    def get_kpi_series(self, kpi_name: str) -> list:
        """Extract a single KPI as a list across all generations."""
        return [snap[kpi_name] for snap in self.history if kpi_name in snap]

    @staticmethod
    def kpi_names() -> list[str]:
        """Return the ordered list of all KPI names."""
        return [
            "generation",
            "elapsed_time",
            "agent_count",
            "extinction_flag",
            "males",
            "females",
            "births",
            "repopulated",
            "deaths_starvation",
            "deaths_ceiling",
            "deaths_total",
            "avg_energy",
            "median_energy",
            "min_energy",
            "max_energy",
            "std_energy",
            "avg_age",
            "avg_fitness",
            "max_fitness",
            "avg_speed",
            "max_lineage",
        ] + [f"state_{s.value}" for s in BehaviorState] + [
            "genetic_diversity",
            "food_spawned",
            "food_eaten",
            "food_energy_consumed",
            "food_available",
            "energy_spent",
        ]
