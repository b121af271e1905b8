"""Writing of the per-experiment ``Results.csv`` files."""
from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from decorr.errors import ResultsWriteError
from decorr.metrics import MatchResult

logger = logging.getLogger(__name__)

RESULTS_FILENAME = "Results.csv"

CSV_COLUMNS = [
    "Pixel Shift X (Columns)",
    "Pixel Shift Y (Rows)",
    "Confidence (%)",
    "Dist. X (mm)",
    "Dist. Y (mm)",
    "Error X (mm)",
    "Error Y (mm)",
    "Error X (%)",
    "Error Y (%)",
    "MIG",
]


def build_row(match: MatchResult, distance_mm: tuple[float, float] | None, mig: float) -> dict:
    """Assemble one CSV row; the error columns and, without a distance, the mm columns stay empty."""
    dist_x, dist_y = distance_mm if distance_mm is not None else (None, None)
    return {
        "Pixel Shift X (Columns)": match.shift_x,
        "Pixel Shift Y (Rows)": match.shift_y,
        "Confidence (%)": match.confidence,
        "Dist. X (mm)": dist_x,
        "Dist. Y (mm)": dist_y,
        "Error X (mm)": None,
        "Error Y (mm)": None,
        "Error X (%)": None,
        "Error Y (%)": None,
        "MIG": mig,
    }


class ResultsWriter:
    """Row-by-row writer of a results CSV.

    Use as a context manager; the header is written on entry and the file is
    closed on exit.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.rows_written = 0
        self._fh = None

    def __enter__(self) -> ResultsWriter:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        try:
            self._fh = self.path.open("w", encoding="utf-8", newline="")
            pd.DataFrame(columns=CSV_COLUMNS).to_csv(self._fh, index=False, lineterminator="\n")
        except OSError as e:
            self.close()
            raise ResultsWriteError(f"Error opening the .csv file {self.path}: {e}") from e
        logger.debug(f"Opened {self.path}")

    def write_row(self, row: dict) -> None:
        """Append one row and flush it to disk.

        :param row: mapping from column name to value, missing columns stay empty
        :raises ResultsWriteError: if the file is not open or the write fails
        """
        if self._fh is None:
            raise ResultsWriteError(f"{self.path} is not open")
        frame = pd.DataFrame([row], columns=CSV_COLUMNS)
        try:
            frame.to_csv(self._fh, header=False, index=False, na_rep="", lineterminator="\n")
            self._fh.flush()
        except OSError as e:
            raise ResultsWriteError(f"Error writing row {self.rows_written} to {self.path}: {e}") from e
        self.rows_written += 1

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
