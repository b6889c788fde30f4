"""Statistics service for meal nutrition rollups."""

from dataclasses import dataclass
from datetime import date, timedelta

from nutrisnap.domain.meals import Meal
from nutrisnap.domain.stats import DailyTotals, NutritionTotals
from nutrisnap.services.meals import MealRepository, MealValidationError

DECEMBER = 12


@dataclass
class StatsService:
    """Service for computing nutrition totals by local calendar day."""

    repository: MealRepository

    def get_day(self, user_id: int, day: date) -> NutritionTotals:
        """Return totals over exactly the meals listed for the day."""
        meals = self.repository.list_meals(user_id, day, day + timedelta(days=1))
        return sum_meals(meals)

    def get_month(self, user_id: int, year: int, month: int) -> list[DailyTotals]:
        """Return totals for every day of a month, zeros included."""
        try:
            start = date(year, month, 1)
            if start.month == DECEMBER:
                end = start.replace(year=start.year + 1, month=1)
            else:
                end = start.replace(month=start.month + 1)
        except ValueError as exc:
            raise MealValidationError(f"Invalid month: {year}-{month}") from exc
        meals = self.repository.list_meals(user_id, start, end)
        by_day: dict[date, list[Meal]] = {}
        for meal in meals:
            by_day.setdefault(meal.local_date, []).append(meal)

        daily = []
        for offset in range((end - start).days):
            day = start + timedelta(days=offset)
            daily.append(DailyTotals(day=day, totals=sum_meals(by_day.get(day, []))))
        return daily


def sum_meals(meals: list[Meal]) -> NutritionTotals:
    """Field-wise sum of nutrition facts."""
    total = NutritionTotals()
    for meal in meals:
        total = NutritionTotals(
            calories=total.calories + meal.calories,
            fat=total.fat + meal.fat,
            carbs=total.carbs + meal.carbs,
            protein=total.protein + meal.protein,
        )
    return total
