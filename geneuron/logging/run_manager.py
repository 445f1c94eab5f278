"""
Run directories for headless Geneuron runs.

Each run gets its own directory under the output base:

    {base_dir}/{YYYYmmdd_HHMMSS}_seed{seed}/
        config.json     - the configuration the run used
        metrics.csv     - one KPI row per generation boundary
        summary.json    - totals from the RunResult, written by `finalize`

Simulation state itself is never written out.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

from geneuron.core.config import SimConfig, save_config
from geneuron.logging.csv_logger import CSVLogger
from geneuron.simulation.engine import RunResult


class RunManager:
    """
    Owns one run's output directory.

    Attributes:
        run_dir: Path to this run's directory.
        csv_logger: Metrics CSV writer.
    """

    def __init__(
        self,
        config: SimConfig,
        base_dir: Optional[str | Path] = None,
        run_name: Optional[str] = None,
    ):
        """
        Create the run directory and save the config into it.

        Args:
            config: Simulation configuration (saved as config.json). Pass
                    the simulation's own copy so seed and size overrides
                    are recorded.
            base_dir: Base output directory. None = config.run.output_dir.
            run_name: Subdirectory name. None = timestamp plus seed.
        """
        if base_dir is None:
            base_dir = config.run.output_dir
        if run_name is None:
            run_name = f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_seed{config.world.seed}"

        self.run_dir = Path(base_dir) / run_name
        self.run_dir.mkdir(parents=True, exist_ok=True)
        save_config(config, self.config_path)
        self.csv_logger = CSVLogger(self.run_dir / "metrics.csv")

    @property
    def config_path(self) -> Path:
        return self.run_dir / "config.json"

    @property
    def metrics_path(self) -> Path:
        return self.csv_logger.file_path

    @property
    def summary_path(self) -> Path:
        return self.run_dir / "summary.json"

    def log_generation(self, kpi_dict: dict) -> None:
        """Append one generation's KPIs to metrics.csv."""
        self.csv_logger.log_row(kpi_dict)

    @staticmethod
    def summarize(result: RunResult, wall_seconds: Optional[float] = None) -> dict:
        """Plain-data totals of a finished run."""
        summary = {
            "seed": result.seed,
            "total_ticks": result.total_ticks,
            "simulated_seconds": round(result.elapsed_time, 4),
            "final_generation": result.final_generation,
            "final_agent_count": result.final_agent_count,
            "final_food_count": result.final_food_count,
            "total_births": result.total_births,
            "total_deaths": result.total_deaths,
            "extinct": result.extinct,
            "extinction_time": result.extinction_time,
        }
        if wall_seconds is not None:
            summary["elapsed_seconds"] = round(wall_seconds, 2)
        return summary

    def finalize(self, result: RunResult, wall_seconds: Optional[float] = None) -> Path:
        """
        Write summary.json for a finished run.

        Returns:
            Path to the summary file.
        """
        summary = self.summarize(result, wall_seconds)
        summary["generations_logged"] = self.csv_logger.rows_written
        with open(self.summary_path, "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2, ensure_ascii=False)
        return self.summary_path

    def __repr__(self) -> str:
        return f"RunManager(run_dir='{self.run_dir}')"
