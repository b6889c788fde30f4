"""Supabase repository for meals."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from supabase import Client

from nutrisnap.domain.meals import (
    ImageSet,
    Meal,
    MealDraft,
    MealType,
    ServingUnit,
    decode_image_set,
    encode_image_set,
)
from nutrisnap.services.meals import MealRepository

_COLUMNS = (
    "id, user_id, meal_type, food_name, brand_name, description, images, "
    "image_url, calories, fat, carbs, protein, quantity, unit, "
    "user_provided_image, analysis_pending, inferred_fields, "
    "timestamp, local_date, revision"
)


@dataclass
class SupabaseMealRepository(MealRepository):
    """Supabase implementation for meals."""

    client: Client

    def create_meal(self, draft: MealDraft) -> Meal:
        """Insert a meal row and return the stored record."""
        payload = {
            "user_id": draft.user_id,
            "meal_type": draft.meal_type.value,
            "food_name": draft.food_name,
            "brand_name": draft.brand_name,
            "description": draft.description,
            "images": encode_image_set(draft.images),
            "calories": draft.calories,
            "fat": draft.fat,
            "carbs": draft.carbs,
            "protein": draft.protein,
            "quantity": draft.quantity,
            "unit": draft.unit.value if draft.unit else None,
            "user_provided_image": draft.user_provided_image,
            "analysis_pending": draft.analysis_pending,
            "inferred_fields": sorted(draft.inferred_fields),
            "timestamp": draft.timestamp.isoformat(),
            "local_date": draft.local_date.isoformat(),
            "revision": 1,
        }
        response = self.client.table("meals").insert(payload).execute()
        if not response.data:
            raise RuntimeError("Failed to create meal")
        return _parse_meal(response.data[0])

    def get_meal(self, meal_id: int) -> Meal | None:
        """Return a meal row by id."""
        response = (
            self.client.table("meals")
            .select(_COLUMNS)
            .eq("id", meal_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_meal(response.data[0])

    def update_meal(self, meal_id: int, changes: dict[str, object]) -> Meal | None:
        """Apply a partial update and return the stored record."""
        payload = {name: _to_column(name, value) for name, value in changes.items()}
        if "images" in payload:
            payload["image_url"] = None
        response = (
            self.client.table("meals").update(payload).eq("id", meal_id).execute()
        )
        if not response.data:
            return None
        return _parse_meal(response.data[0])

    def delete_meal(self, meal_id: int) -> bool:
        """Delete a meal row."""
        response = self.client.table("meals").delete().eq("id", meal_id).execute()
        return bool(response.data)

    def list_meals(self, user_id: int, start: date, end: date) -> list[Meal]:
        """Return meals with local dates in the half-open range."""
        response = (
            self.client.table("meals")
            .select(_COLUMNS)
            .eq("user_id", user_id)
            .gte("local_date", start.isoformat())
            .lt("local_date", end.isoformat())
            .order("timestamp", desc=False)
            .execute()
        )
        return [_parse_meal(row) for row in response.data or []]


def _to_column(name: str, value: object) -> object:
    if name == "images":
        return encode_image_set(value)  # type: ignore[arg-type]
    if isinstance(value, frozenset):
        return sorted(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime | date):
        return value.isoformat()
    return value


def _parse_images(row: dict[str, object]) -> ImageSet | None:
    # Rows written before the tagged column existed only have image_url.
    if row.get("images") is not None:
        return decode_image_set(row["images"])
    return decode_image_set(row.get("image_url"))


def _parse_meal(row: dict[str, object]) -> Meal:
    unit = row.get("unit")
    quantity = row.get("quantity")
    return Meal(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        meal_type=MealType(row["meal_type"]),
        timestamp=datetime.fromisoformat(str(row["timestamp"])),
        local_date=date.fromisoformat(str(row["local_date"])[:10]),
        food_name=row.get("food_name") or None,
        brand_name=row.get("brand_name") or None,
        description=row.get("description") or None,
        images=_parse_images(row),
        calories=int(row.get("calories") or 0),
        fat=int(row.get("fat") or 0),
        carbs=int(row.get("carbs") or 0),
        protein=int(row.get("protein") or 0),
        quantity=float(quantity) if quantity is not None else None,
        unit=ServingUnit(unit) if unit else None,
        user_provided_image=bool(row.get("user_provided_image")),
        analysis_pending=bool(row.get("analysis_pending")),
        inferred_fields=frozenset(row.get("inferred_fields") or ()),
        revision=int(row.get("revision") or 1),
    )
