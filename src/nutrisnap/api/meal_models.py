"""Pydantic models for the meal HTTP API."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from nutrisnap.domain.meals import Meal
from nutrisnap.domain.stats import NutritionTotals


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MealResponse(_CamelModel):
    """Meal record as returned to clients."""

    id: int
    user_id: int
    meal_type: str
    food_name: str | None
    brand_name: str | None
    description: str | None
    image_url: str | None
    image_urls: list[str]
    calories: int
    fat: int
    carbs: int
    protein: int
    quantity: float | None
    unit: str | None
    user_provided_image: bool
    analysis_pending: bool
    timestamp: datetime
    local_date: date

    @classmethod
    def from_meal(cls, meal: Meal) -> "MealResponse":
        return cls(
            id=meal.id,
            user_id=meal.user_id,
            meal_type=meal.meal_type.value,
            food_name=meal.food_name,
            brand_name=meal.brand_name,
            description=meal.description,
            image_url=meal.first_image,
            image_urls=meal.image_refs,
            calories=meal.calories,
            fat=meal.fat,
            carbs=meal.carbs,
            protein=meal.protein,
            quantity=meal.quantity,
            unit=meal.unit.value if meal.unit else None,
            user_provided_image=meal.user_provided_image,
            analysis_pending=meal.analysis_pending,
            timestamp=meal.timestamp,
            local_date=meal.local_date,
        )


class MealUpdateRequest(_CamelModel):
    """Partial meal edit; only fields present in the body are applied."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    meal_type: str | None = None
    food_name: str | None = None
    brand_name: str | None = None
    description: str | None = None
    image_url: str | list[str] | None = None
    quantity: float | None = None
    unit: str | None = None
    calories: int | None = None
    fat: int | None = None
    carbs: int | None = None
    protein: int | None = None

    def to_changes(self) -> dict[str, object]:
        """Return the provided fields keyed by meal field names."""
        changes = self.model_dump(exclude_unset=True)
        if "image_url" in changes:
            changes["images"] = changes.pop("image_url")
        return changes


class NutritionSummaryResponse(BaseModel):
    """Summed nutrition facts."""

    calories: int
    fat: int
    carbs: int
    protein: int

    @classmethod
    def from_totals(cls, totals: NutritionTotals) -> "NutritionSummaryResponse":
        return cls(
            calories=totals.calories,
            fat=totals.fat,
            carbs=totals.carbs,
            protein=totals.protein,
        )
