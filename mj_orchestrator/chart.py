"""Stacked percentage chart of majority-judgment results."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from .models import GRADE_COUNT, GRADE_LABELS  # noqa: E402

logger = logging.getLogger(__name__)

GRADE_COLORS = (
    "#1B5E20",  # Excellent
    "#4CAF50",  # Very good
    "#9E9D24",  # Good
    "#FDD835",  # Medium
    "#FB8C00",  # Bad
    "#E53935",  # Very bad
    "#B71C1C",  # Awful
)


def percentage_series(matrix: Sequence[Sequence[int]], total_votes: int) -> List[List[float]]:
    """Return one list of per-candidate percentages per grade, Excellent first."""

    series: List[List[float]] = []
    for grade_index in range(GRADE_COUNT):
        series.append(
            [100.0 * row[grade_index] / total_votes if total_votes else 0.0 for row in matrix]
        )
    return series


def generate_chart(
    matrix: Sequence[Sequence[int]],
    total_votes: int,
    output_path: Path | str,
    *,
    width: int = 800,
    height: int = 600,
) -> Path:
    """Render ``matrix`` (candidates x grades) normalised on ``total_votes`` to ``output_path``."""

    if any(len(row) != GRADE_COUNT for row in matrix):
        raise ValueError(f"Each candidate row needs {GRADE_COUNT} grade counts")
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    candidates = [f"Candidate {index + 1}" for index in range(len(matrix))]
    series = percentage_series(matrix, total_votes)

    dpi = 100
    fig, ax = plt.subplots(figsize=(width / dpi, height / dpi), dpi=dpi)
    fig.patch.set_facecolor("white")
    bottoms = [0.0] * len(matrix)
    # Awful is drawn first so Excellent ends up on top of each bar.
    for grade_index in reversed(range(GRADE_COUNT)):
        values = series[grade_index]
        bars = ax.bar(
            candidates,
            values,
            bottom=bottoms,
            color=GRADE_COLORS[grade_index],
            label=GRADE_LABELS[grade_index],
        )
        for bar, value in zip(bars, values):
            if value > 0:
                ax.text(
                    bar.get_x() + bar.get_width() / 2,
                    bar.get_y() + bar.get_height() / 2,
                    f"{value:.1f}%",
                    ha="center",
                    va="center",
                    color="white",
                    fontweight="bold",
                    fontsize=12,
                )
        bottoms = [bottom + value for bottom, value in zip(bottoms, values)]

    ax.axhline(50, color="black", linewidth=2, linestyle=(0, (5, 5)), label="50% Median")
    ax.set_ylim(0, 100)
    ax.set_ylabel("Votes (%)")
    ax.legend(loc="upper left", bbox_to_anchor=(1.0, 1.0))
    fig.tight_layout()
    fig.savefig(output, dpi=dpi)
    plt.close(fig)
    logger.info("Chart image saved as %s", output)
    return output


__all__ = ["GRADE_COLORS", "generate_chart", "percentage_series"]
