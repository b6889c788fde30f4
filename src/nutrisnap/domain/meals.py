"""Domain models for logged meals."""

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum


class MealType(StrEnum):
    """Meal slot within a day."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


class ServingUnit(StrEnum):
    """Unit for a serving quantity."""

    GRAMS = "grams"
    OUNCES = "ounces"
    COUNT = "count"


@dataclass(frozen=True)
class SingleImage:
    """A meal with exactly one image reference."""

    ref: str

    @property
    def refs(self) -> list[str]:
        return [self.ref]


@dataclass(frozen=True)
class MultipleImages:
    """A meal with an ordered list of image references."""

    refs: list[str]


ImageSet = SingleImage | MultipleImages


def image_set_from_refs(refs: list[str]) -> ImageSet | None:
    """Build the image set shape that fits the number of references."""
    cleaned = [ref for ref in refs if ref]
    if not cleaned:
        return None
    if len(cleaned) == 1:
        return SingleImage(cleaned[0])
    return MultipleImages(cleaned)


def encode_image_set(images: ImageSet | None) -> dict[str, object] | None:
    """Serialize an image set to its tagged storage form."""
    if images is None:
        return None
    if isinstance(images, SingleImage):
        return {"kind": "single", "ref": images.ref}
    return {"kind": "multiple", "refs": list(images.refs)}


def decode_image_set(raw: object) -> ImageSet | None:
    """Read an image set from storage.

    Accepts the tagged form written by ``encode_image_set`` as well as the
    legacy text column, which holds either a single reference or a JSON array
    of references.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, dict):
        kind = raw.get("kind")
        if kind == "single" and isinstance(raw.get("ref"), str):
            return SingleImage(raw["ref"])
        if kind == "multiple" and isinstance(raw.get("refs"), list):
            return image_set_from_refs([str(ref) for ref in raw["refs"]])
        raise ValueError(f"Unknown image set encoding: {kind!r}")
    if isinstance(raw, list):
        return image_set_from_refs([str(ref) for ref in raw])
    if isinstance(raw, str):
        if raw.startswith("["):
            return decode_image_set(json.loads(raw))
        return SingleImage(raw)
    raise ValueError(f"Unsupported image set value: {type(raw).__name__}")


@dataclass(frozen=True)
class MealDraft:
    """Fields of a meal before it has been persisted."""

    user_id: int
    meal_type: MealType
    timestamp: datetime
    local_date: date
    food_name: str | None = None
    brand_name: str | None = None
    description: str | None = None
    images: ImageSet | None = None
    calories: int = 0
    fat: int = 0
    carbs: int = 0
    protein: int = 0
    quantity: float | None = None
    unit: ServingUnit | None = None
    user_provided_image: bool = False
    analysis_pending: bool = False
    inferred_fields: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class Meal:
    """A persisted meal record.

    ``inferred_fields`` names the descriptive fields whose current value came
    from analysis rather than from the user.
    """

    id: int
    user_id: int
    meal_type: MealType
    timestamp: datetime
    local_date: date
    food_name: str | None = None
    brand_name: str | None = None
    description: str | None = None
    images: ImageSet | None = None
    calories: int = 0
    fat: int = 0
    carbs: int = 0
    protein: int = 0
    quantity: float | None = None
    unit: ServingUnit | None = None
    user_provided_image: bool = False
    analysis_pending: bool = False
    inferred_fields: frozenset[str] = field(default_factory=frozenset)
    revision: int = 1

    @property
    def image_refs(self) -> list[str]:
        return self.images.refs if self.images else []

    @property
    def first_image(self) -> str | None:
        refs = self.image_refs
        return refs[0] if refs else None


@dataclass(frozen=True)
class ReconciliationJob:
    """Asynchronous AI work scheduled for a meal after a synchronous write."""

    meal_id: int
    revision: int
    analyze: bool = False
    synthesize: bool = False
    image_ref: str | None = None
    description: str | None = None
    food_name_hint: str | None = None
    protected_fields: frozenset[str] = field(default_factory=frozenset)
    analyze_synthesized_image: bool = False
