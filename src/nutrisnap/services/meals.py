"""Meal ingestion and AI reconciliation service."""

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, timedelta
from typing import Protocol

from nutrisnap.domain.analysis import MealAnalysis
from nutrisnap.domain.meals import (
    ImageSet,
    Meal,
    MealDraft,
    MealType,
    ReconciliationJob,
    ServingUnit,
    SingleImage,
    image_set_from_refs,
)
from nutrisnap.services.analysis import NutritionAnalyzer, to_data_url
from nutrisnap.services.images import ImageSynthesizer
from nutrisnap.services.notifications import NotificationChannel

NUTRIENT_FIELDS = ("calories", "fat", "carbs", "protein")
INFERRED_FIELDS = ("food_name", "brand_name", "quantity", "unit")
TEXT_FIELDS = ("food_name", "brand_name", "description")
MUTABLE_FIELDS = frozenset(
    {"meal_type", "images", "quantity", "unit", *TEXT_FIELDS, *NUTRIENT_FIELDS}
)
MAX_TZ_OFFSET_MINUTES = 14 * 60

_logger = logging.getLogger(__name__)


class MealValidationError(ValueError):
    """Raised when meal input is rejected before anything is written."""


class MealRepository(Protocol):
    """Persistence interface for meals."""

    def create_meal(self, draft: MealDraft) -> Meal:
        """Persist a new meal and return it."""

    def get_meal(self, meal_id: int) -> Meal | None:
        """Return a meal by id."""

    def update_meal(self, meal_id: int, changes: dict[str, object]) -> Meal | None:
        """Apply a partial update keyed by meal field names."""

    def delete_meal(self, meal_id: int) -> bool:
        """Delete a meal and report whether it existed."""

    def list_meals(self, user_id: int, start: date, end: date) -> list[Meal]:
        """Return a user's meals with local dates in ``[start, end)``."""


@dataclass(frozen=True)
class ImageUpload:
    """Raw uploaded image."""

    content: bytes
    content_type: str | None = None


@dataclass(frozen=True)
class NewMeal:
    """Input for logging a new meal."""

    meal_type: str
    food_name: str | None = None
    brand_name: str | None = None
    description: str | None = None
    images: list[ImageUpload] = field(default_factory=list)
    quantity: float | None = None
    unit: str | None = None
    tz_offset_minutes: int = 0


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class MealService:
    """Creates and edits meals, deferring AI work to a background job.

    Synchronous methods persist immediately and hand back an optional
    ``ReconciliationJob``; callers schedule ``reconcile`` for it after the
    response is sent.
    """

    repository: MealRepository
    analyzer: NutritionAnalyzer
    synthesizer: ImageSynthesizer
    notifications: NotificationChannel
    max_images: int = 5
    max_image_bytes: int = 5 * 1024 * 1024
    clock: Callable[[], datetime] = _utcnow
    _latest_jobs: dict[int, int] = field(default_factory=dict)
    _edits_during_job: dict[int, set[str]] = field(default_factory=dict)

    def create_meal(
        self, user_id: int, new_meal: NewMeal
    ) -> tuple[Meal, ReconciliationJob]:
        """Validate and persist a placeholder meal, returning its analysis job."""
        meal_type = parse_meal_type(new_meal.meal_type)
        description = _clean_text(new_meal.description)
        validate_tz_offset(new_meal.tz_offset_minutes)
        image_refs = self._encode_uploads(new_meal.images)
        if not image_refs and not description:
            raise MealValidationError("Either a food image or description is required")

        timestamp = self.clock()
        draft = MealDraft(
            user_id=user_id,
            meal_type=meal_type,
            timestamp=timestamp,
            local_date=local_date_for(timestamp, new_meal.tz_offset_minutes),
            food_name=_clean_text(new_meal.food_name),
            brand_name=_clean_text(new_meal.brand_name),
            description=description,
            images=image_set_from_refs(image_refs),
            quantity=_parse_quantity(new_meal.quantity),
            unit=parse_unit(new_meal.unit),
            user_provided_image=bool(image_refs),
            analysis_pending=True,
        )
        meal = self.repository.create_meal(draft)
        job = ReconciliationJob(
            meal_id=meal.id,
            revision=meal.revision,
            analyze=True,
            synthesize=not image_refs,
            image_ref=meal.first_image,
            description=description,
            food_name_hint=meal.food_name,
        )
        self._latest_jobs[meal.id] = meal.revision
        _logger.info(
            "Meal created, analysis scheduled",
            extra={"meal_id": meal.id, "synthesize": job.synthesize},
        )
        return meal, job

    def get_meal(self, user_id: int, meal_id: int) -> Meal | None:
        """Return a meal owned by the user."""
        meal = self.repository.get_meal(meal_id)
        if meal is None or meal.user_id != user_id:
            return None
        return meal

    def list_day(self, user_id: int, day: date) -> list[Meal]:
        """Return the user's meals for a local calendar day."""
        return self.repository.list_meals(user_id, day, day + timedelta(days=1))

    def today(self, tz_offset_minutes: int) -> date:
        """Return the caller's local date."""
        validate_tz_offset(tz_offset_minutes)
        return local_date_for(self.clock(), tz_offset_minutes)

    def update_meal(
        self, user_id: int, meal_id: int, changes: dict[str, object]
    ) -> tuple[Meal, ReconciliationJob | None] | None:
        """Merge an edit into a meal and decide what AI work it needs.

        Returns ``None`` when the meal does not exist for this user.
        """
        existing = self.get_meal(user_id, meal_id)
        if existing is None:
            return None
        parsed = parse_changes(changes)
        candidate = replace(existing, **parsed)

        description_changed = (
            "description" in parsed and parsed["description"] != existing.description
        )
        images_changed = (
            "images" in parsed and candidate.image_refs != existing.image_refs
        )
        regenerate = description_changed and not existing.user_provided_image
        reanalyze = False
        if images_changed:
            if candidate.images is not None:
                parsed["user_provided_image"] = True
                regenerate = False
                reanalyze = True
            else:
                parsed["user_provided_image"] = False
                regenerate = True

        synthesis_text = candidate.description or candidate.food_name
        if regenerate and not synthesis_text:
            regenerate = False
        if regenerate:
            reanalyze = True

        # Fields named in an edit belong to the user from now on.
        claimed = existing.inferred_fields.intersection(parsed)
        if claimed:
            parsed["inferred_fields"] = existing.inferred_fields - claimed
        if reanalyze:
            parsed["analysis_pending"] = True
        parsed["revision"] = existing.revision + 1
        updated = self.repository.update_meal(meal_id, parsed)
        if updated is None:
            return None
        if not reanalyze:
            self._remember_edit_during_job(meal_id, parsed)
            return updated, None

        self._edits_during_job.pop(meal_id, None)

        job = ReconciliationJob(
            meal_id=meal_id,
            revision=updated.revision,
            analyze=True,
            synthesize=regenerate,
            image_ref=None if regenerate else candidate.first_image,
            description=synthesis_text if regenerate else candidate.description,
            food_name_hint=candidate.food_name,
            protected_fields=frozenset(k for k in NUTRIENT_FIELDS if k in changes),
            analyze_synthesized_image=True,
        )
        self._latest_jobs[meal_id] = updated.revision
        _logger.info(
            "Meal edit scheduled reconciliation",
            extra={"meal_id": meal_id, "synthesize": regenerate},
        )
        return updated, job

    def delete_meal(self, user_id: int, meal_id: int) -> bool:
        """Delete a meal owned by the user."""
        if self.get_meal(user_id, meal_id) is None:
            return False
        self._latest_jobs.pop(meal_id, None)
        self._edits_during_job.pop(meal_id, None)
        return self.repository.delete_meal(meal_id)

    def _remember_edit_during_job(
        self, meal_id: int, parsed: dict[str, object]
    ) -> None:
        # Nutrients typed while a job is outstanding must survive its merge.
        if meal_id not in self._latest_jobs:
            return
        edited = {name for name in NUTRIENT_FIELDS if name in parsed}
        if edited:
            self._edits_during_job.setdefault(meal_id, set()).update(edited)

    async def reconcile(self, job: ReconciliationJob) -> None:
        """Run the AI steps for a job and write the results back.

        Never raises: upstream and store failures are logged and the record
        is finalized with whatever results are available.
        """
        synthesized: str | None = None
        analysis: MealAnalysis | None = None
        if job.synthesize and job.analyze_synthesized_image:
            synthesized = await self._synthesize(job)
            if job.analyze:
                analysis = await self._analyze(job, synthesized, job.description)
        elif job.synthesize:
            synthesized, analysis = await asyncio.gather(
                self._synthesize(job),
                self._analyze(job, job.image_ref, job.description),
            )
        elif job.analyze:
            analysis = await self._analyze(job, job.image_ref, job.description)
        await self._finalize(job, analysis, synthesized)

    async def _synthesize(self, job: ReconciliationJob) -> str | None:
        text = job.description or job.food_name_hint
        if not text:
            return None
        try:
            return await self.synthesizer.synthesize(text, job.food_name_hint)
        except Exception:
            _logger.exception(
                "Image synthesis failed", extra={"meal_id": job.meal_id}
            )
            return None

    async def _analyze(
        self, job: ReconciliationJob, image_ref: str | None, description: str | None
    ) -> MealAnalysis | None:
        if not image_ref and not description:
            return None
        try:
            return await self.analyzer.analyze(image_ref, description)
        except Exception:
            _logger.exception(
                "Nutrition analysis failed", extra={"meal_id": job.meal_id}
            )
            return None

    async def _finalize(
        self,
        job: ReconciliationJob,
        analysis: MealAnalysis | None,
        synthesized: str | None,
    ) -> None:
        if self._latest_jobs.get(job.meal_id) != job.revision:
            _logger.info(
                "Dropping superseded reconciliation", extra={"meal_id": job.meal_id}
            )
            return
        try:
            current = self.repository.get_meal(job.meal_id)
            if current is None:
                _logger.info(
                    "Meal deleted before reconciliation finished",
                    extra={"meal_id": job.meal_id},
                )
                return
            if current.revision != job.revision:
                _logger.info(
                    "Meal edited during reconciliation, merging into latest",
                    extra={"meal_id": job.meal_id},
                )
            edited = self._edits_during_job.get(job.meal_id)
            if edited:
                job = replace(job, protected_fields=job.protected_fields | edited)
            changes = merge_results(current, job, analysis, synthesized)
            changes["analysis_pending"] = False
            changes["revision"] = current.revision + 1
            self.repository.update_meal(job.meal_id, changes)
        except Exception:
            _logger.exception(
                "Failed to store reconciliation; meal may stay pending",
                extra={"meal_id": job.meal_id},
            )
            return
        finally:
            if self._latest_jobs.get(job.meal_id) == job.revision:
                self._latest_jobs.pop(job.meal_id, None)
                self._edits_during_job.pop(job.meal_id, None)
        await self.notifications.meal_updated(job.meal_id)

    def _encode_uploads(self, uploads: list[ImageUpload]) -> list[str]:
        if len(uploads) > self.max_images:
            raise MealValidationError(f"At most {self.max_images} images are allowed")
        refs: list[str] = []
        for upload in uploads:
            if not upload.content:
                continue
            if upload.content_type and not upload.content_type.startswith("image/"):
                raise MealValidationError("Uploads must be images")
            if len(upload.content) > self.max_image_bytes:
                raise MealValidationError("Image is too large")
            refs.append(to_data_url(upload.content))
        return refs


def merge_results(
    current: Meal,
    job: ReconciliationJob,
    analysis: MealAnalysis | None,
    synthesized: str | None,
) -> dict[str, object]:
    """Build the final changes for a meal from AI results.

    Inferred descriptive fields fill values that are still empty and replace
    values an earlier analysis inferred; anything the user supplied wins.
    """
    changes: dict[str, object] = {}
    if synthesized and not current.user_provided_image:
        changes["images"] = SingleImage(synthesized)
        changes["user_provided_image"] = False
    if analysis is None:
        return changes
    for name in NUTRIENT_FIELDS:
        if name not in job.protected_fields:
            changes[name] = getattr(analysis, name)
    inferred_fields = set(current.inferred_fields)
    for name in INFERRED_FIELDS:
        inferred = getattr(analysis, name)
        if name in current.inferred_fields:
            changes[name] = inferred
            if inferred is None:
                inferred_fields.discard(name)
        elif inferred is not None and _is_blank(getattr(current, name)):
            changes[name] = inferred
            inferred_fields.add(name)
    if inferred_fields != current.inferred_fields:
        changes["inferred_fields"] = frozenset(inferred_fields)
    return changes


def parse_changes(changes: dict[str, object]) -> dict[str, object]:
    """Validate an edit and convert it to meal field values."""
    unknown = set(changes) - MUTABLE_FIELDS
    if unknown:
        raise MealValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
    parsed: dict[str, object] = {}
    for name, value in changes.items():
        if name == "meal_type":
            parsed[name] = parse_meal_type(value)
        elif name in TEXT_FIELDS:
            parsed[name] = _clean_text(value)
        elif name == "images":
            parsed[name] = _parse_image_refs(value)
        elif name == "quantity":
            parsed[name] = _parse_quantity(value)
        elif name == "unit":
            parsed[name] = parse_unit(value)
        else:
            parsed[name] = _parse_nutrient(name, value)
    return parsed


def parse_meal_type(value: object) -> MealType:
    """Parse a meal type or raise a validation error."""
    try:
        return MealType(str(value).strip().lower())
    except ValueError as exc:
        raise MealValidationError(f"Invalid meal type: {value!r}") from exc


def parse_unit(value: object) -> ServingUnit | None:
    """Parse an optional serving unit."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return ServingUnit(str(value).strip().lower())
    except ValueError as exc:
        raise MealValidationError(f"Invalid unit: {value!r}") from exc


def validate_tz_offset(tz_offset_minutes: int) -> None:
    """Reject offsets outside the range of real timezones."""
    if abs(tz_offset_minutes) > MAX_TZ_OFFSET_MINUTES:
        raise MealValidationError("Timezone offset out of range")


def local_date_for(timestamp: datetime, tz_offset_minutes: int) -> date:
    """Return the local calendar date of a UTC timestamp.

    The offset follows JavaScript's ``getTimezoneOffset`` convention: minutes
    to add to local time to get UTC, so UTC-5 is ``300``.
    """
    utc = timestamp.astimezone(UTC)
    return (utc - timedelta(minutes=tz_offset_minutes)).date()


def _parse_image_refs(value: object) -> ImageSet | None:
    if value is None:
        return None
    if isinstance(value, str):
        return image_set_from_refs([value.strip()])
    if isinstance(value, list) and all(isinstance(ref, str) for ref in value):
        return image_set_from_refs([ref.strip() for ref in value])
    raise MealValidationError("Images must be a reference or a list of references")


def _parse_quantity(value: object) -> float | None:
    if value is None or value == "":
        return None
    try:
        quantity = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise MealValidationError("Quantity must be a number") from exc
    if math.isnan(quantity) or math.isinf(quantity):
        raise MealValidationError("Quantity must be a finite number")
    if quantity < 0:
        raise MealValidationError("Quantity must be non-negative")
    return quantity


def _parse_nutrient(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise MealValidationError(f"{name} must be a number")
    if value < 0:
        raise MealValidationError(f"{name} must be non-negative")
    return round(value)


def _clean_text(value: object) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
