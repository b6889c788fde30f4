"""Models for nutrition analysis results."""

import math

from pydantic import BaseModel, field_validator

from nutrisnap.domain.meals import ServingUnit


def _non_negative_int(value: object) -> int:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or number <= 0:
        return 0
    if math.isinf(number):
        return 0
    return round(number)


class MealAnalysis(BaseModel):
    """Structured nutrition estimate for a meal.

    Upstream output is not guaranteed to be clean, so numbers are coerced to
    non-negative integers and blank strings become ``None``.
    """

    calories: int = 0
    fat: int = 0
    carbs: int = 0
    protein: int = 0
    food_name: str | None = None
    brand_name: str | None = None
    quantity: int | None = None
    unit: ServingUnit | None = None

    @field_validator("calories", "fat", "carbs", "protein", mode="before")
    @classmethod
    def _coerce_nutrient(cls, value: object) -> int:
        return _non_negative_int(value)

    @field_validator("quantity", mode="before")
    @classmethod
    def _coerce_quantity(cls, value: object) -> int | None:
        quantity = _non_negative_int(value)
        return quantity or None

    @field_validator("food_name", "brand_name", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> str | None:
        if not isinstance(value, str):
            return None
        cleaned = value.strip()
        return cleaned or None

    @field_validator("unit", mode="before")
    @classmethod
    def _known_unit(cls, value: object) -> ServingUnit | None:
        if not isinstance(value, str):
            return None
        try:
            return ServingUnit(value.strip().lower())
        except ValueError:
            return None
