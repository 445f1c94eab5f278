"""
CSV metrics log for Geneuron runs.

One row per generation boundary, columns in MetricsCollector.kpi_names()
order. The header is written lazily on the first row so a run that never
reaches a boundary leaves no file behind.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Optional

from geneuron.simulation.metrics import MetricsCollector


class CSVLogger:
    """
    Appends per-generation KPI rows to a CSV file.

    Attributes:
        file_path: Path to the CSV file.
        columns: Ordered column names.
        rows_written: Rows appended through this instance.
    """

    def __init__(
        self,
        file_path: str | Path,
        columns: Optional[list[str]] = None,
    ):
        """
        Args:
            file_path: Output CSV path. Parent directories are created.
            columns: Ordered column names. None = MetricsCollector.kpi_names().
        """
        self.file_path = Path(file_path)
        self.columns = list(columns) if columns else MetricsCollector.kpi_names()
        self.rows_written = 0
        self.file_path.parent.mkdir(parents=True, exist_ok=True)

    def log_row(self, kpi_dict: dict) -> None:
        """
        Append one generation's KPIs.

        Keys outside `columns` are dropped; missing columns become empty
        cells. An existing non-empty file is appended to without a new
        header.
        """
        new_file = not self.file_path.exists() or self.file_path.stat().st_size == 0
        with open(self.file_path, "a", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=self.columns, extrasaction="ignore")
            if new_file:
                writer.writeheader()
            writer.writerow(kpi_dict)
        self.rows_written += 1

    def read_back(self) -> list[dict]:
        """All rows as string dicts; empty if nothing was logged yet."""
        if not self.file_path.exists():
            return []
        with open(self.file_path, "r", newline="", encoding="utf-8") as f:
            return list(csv.DictReader(f))
