"""Nutrition analysis service using LLMs."""

import base64
from dataclasses import dataclass
from typing import Protocol

from nutrisnap.domain.analysis import MealAnalysis

ANALYSIS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "calories": {"type": "number"},
        "fat": {"type": "number"},
        "carbs": {"type": "number"},
        "protein": {"type": "number"},
        "food_name": {"type": "string"},
        "brand_name": {"type": "string"},
        "quantity": {"anyOf": [{"type": "number"}, {"type": "null"}]},
        "unit": {
            "anyOf": [
                {"type": "string", "enum": ["grams", "ounces", "count"]},
                {"type": "null"},
            ]
        },
    },
    "required": [
        "calories",
        "fat",
        "carbs",
        "protein",
        "food_name",
        "brand_name",
        "quantity",
        "unit",
    ],
    "additionalProperties": False,
}

_DETAILS_PROMPT = (
    "Provide nutritional information including calories, fat (grams), "
    "carbohydrates (grams) and protein (grams). "
    "Give the brand name if it is not a generic food like an apple; "
    "otherwise leave it blank. "
    "Estimate the quantity with a unit: use count for discrete items "
    "(e.g. 2 cookies), grams for items weighed in metric, ounces for items "
    "weighed in imperial. "
    "The food_name should be specific "
    '(e.g. "Grilled Chicken Salad" instead of just "Salad").'
)


class AnalysisClient(Protocol):
    """Interface for LLM nutrition analysis."""

    async def analyze(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str | None,
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        """Return structured nutrition data."""


@dataclass
class NutritionAnalyzer:
    """Service that prepares analysis prompts and validates results."""

    client: AnalysisClient
    model: str
    reasoning_effort: str | None
    store: bool

    async def analyze(
        self, image_ref: str | None, description: str | None
    ) -> MealAnalysis:
        """Estimate nutrition from an image reference, a description, or both."""
        description = (description or "").strip() or None
        if not image_ref and not description:
            raise ValueError("An image or a description is required for analysis")
        raw = await self.client.analyze(
            model=self.model,
            reasoning_effort=self.reasoning_effort,
            store=self.store,
            image_data_url=image_ref or None,
            schema=ANALYSIS_SCHEMA,
            prompt=build_analysis_prompt(
                has_image=bool(image_ref), description=description
            ),
        )
        return MealAnalysis.model_validate(raw)


def build_analysis_prompt(*, has_image: bool, description: str | None) -> str:
    """Return the analysis prompt for an image or a text-only request."""
    if has_image:
        lines = ["Analyze this food image and estimate its nutritional information."]
        if description:
            lines.append(f"The user describes it as: {description}")
    else:
        lines = [
            "Based on this food description, estimate the nutritional information:",
            description or "Unknown food",
        ]
    lines.append(_DETAILS_PROMPT)
    return "\n".join(lines)


def to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
