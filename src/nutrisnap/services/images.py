"""Image synthesis service for meals without a user photo."""

from dataclasses import dataclass
from typing import Protocol

from nutrisnap.services.analysis import to_data_url


class ImageClient(Protocol):
    """Interface for text-to-image generation."""

    async def generate(self, *, model: str, prompt: str, size: str) -> bytes:
        """Return raw image bytes for a prompt."""


@dataclass
class ImageSynthesizer:
    """Service that builds food photo prompts and returns image references."""

    client: ImageClient
    model: str
    size: str = "1024x1024"

    async def synthesize(self, description: str, food_name: str | None = None) -> str:
        """Generate a photorealistic image and return it as a data URL."""
        image_bytes = await self.client.generate(
            model=self.model,
            prompt=build_image_prompt(description, food_name),
            size=self.size,
        )
        if not image_bytes:
            raise RuntimeError("Image generation returned no data")
        return to_data_url(image_bytes)


def build_image_prompt(description: str, food_name: str | None) -> str:
    """Return the prompt for a representative meal photo."""
    return (
        f"A photorealistic, appetizing image of {food_name or 'food'}: "
        f"{description}. "
        "This should look like a smartphone photo of real food, "
        "not a 3D render or illustration. "
        "Natural lighting, shot from above as if someone is about to eat it. "
        "No text, no watermarks."
    )
