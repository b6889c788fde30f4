"""Domain models for nutrition rollups."""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class NutritionTotals:
    """Summed nutrition facts for a set of meals."""

    calories: int = 0
    fat: int = 0
    carbs: int = 0
    protein: int = 0


@dataclass(frozen=True)
class DailyTotals:
    """Nutrition totals for one local calendar day."""

    day: date
    totals: NutritionTotals
