"""
grading_policy.py — Numeric grading policy for report cards.

Collects every literal the grading engine depends on:
  - pass thresholds per education stage (60, or 70 for DIVERSIFICADO)
  - points each bimester contributes to the cumulative score (25 of 100)
  - rounding used by the summary view and by the per-period class rows

Build it once with load_policy() and pass it to the calculators.
"""

import math
import os
import unicodedata
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


# Education stages (course "nivel"), lowest to highest.
EDUCATION_STAGES = ["PREPRIMARIA", "PRIMARIA", "BASICO", "DIVERSIFICADO"]
UPPER_SECONDARY_STAGE = "DIVERSIFICADO"


@dataclass(frozen=True)
class GradingPolicy:
    """Thresholds, weights and rounding for one deployment."""

    periods: int = 4
    max_score: float = 100.0
    points_per_period: float = 25.0
    passing_score: int = 60
    upper_secondary_passing_score: int = 70
    upper_secondary_stage: str = UPPER_SECONDARY_STAGE
    summary_decimals: int = 2
    period_stat_decimals: int = 0

    @property
    def period_numbers(self) -> List[int]:
        return list(range(1, self.periods + 1))

    def passing_score_for(self, stage: Optional[str]) -> int:
        """Minimum passing score for a course's education stage."""
        if stage and str(stage).strip().upper() == self.upper_secondary_stage:
            return self.upper_secondary_passing_score
        return self.passing_score

    def contribution(self, total: float) -> float:
        """Points one bimester adds to the cumulative score."""
        return float(total) * self.points_per_period / self.max_score

    def describe(self) -> Dict[str, Any]:
        return {
            "periods": self.periods,
            "points_per_period": self.points_per_period,
            "passing_scores": {
                stage: self.passing_score_for(stage) for stage in EDUCATION_STAGES
            },
        }


def load_policy() -> GradingPolicy:
    """Build the policy from PASSING_SCORE / UPPER_SECONDARY_PASSING_SCORE."""
    return GradingPolicy(
        passing_score=int(os.getenv("PASSING_SCORE", "60")),
        upper_secondary_passing_score=int(os.getenv("UPPER_SECONDARY_PASSING_SCORE", "70")),
    )


def round_half_up(value: Optional[float], places: int = 2) -> Optional[float]:
    """
    Round half away from zero on value * 10**places.

    Python's round() is banker's rounding; report cards expect 74.5 -> 75.
    """
    if value is None:
        return None
    factor = 10 ** places
    rounded = math.floor(float(value) * factor + 0.5) / factor
    return int(rounded) if places == 0 else rounded


def sort_key_for_name(value: Any) -> str:
    """Accent- and case-insensitive key so 'Álvarez' sorts next to 'Alvarez'."""
    text = unicodedata.normalize("NFKD", str(value or ""))
    return "".join(ch for ch in text if not unicodedata.combining(ch)).casefold()


def format_grade_label(grade: Optional[str]) -> str:
    """primero_basico -> 'Primero Basico'; PRIMERO_BASICO keeps its capitals."""
    if not grade:
        return "Sin grado"
    return " ".join(part[:1].upper() + part[1:] for part in str(grade).split("_") if part)
