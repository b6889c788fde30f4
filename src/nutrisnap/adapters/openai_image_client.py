"""OpenAI Images API client for meal photo synthesis."""

import base64
from dataclasses import dataclass

import httpx
from openai import AsyncOpenAI

from nutrisnap.services.images import ImageClient


@dataclass
class OpenAIImageClient(ImageClient):
    """Image client backed by OpenAI Images API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str, timeout: float) -> "OpenAIImageClient":
        """Create an OpenAI image client with a managed httpx session."""
        return cls(
            client=AsyncOpenAI(
                api_key=api_key,
                http_client=httpx.AsyncClient(timeout=timeout),
            )
        )

    async def generate(self, *, model: str, prompt: str, size: str) -> bytes:
        """Generate one image and return its decoded bytes."""
        request_payload: dict[str, object] = {
            "model": model,
            "prompt": prompt,
            "n": 1,
            "size": size,
        }
        # gpt-image models always return base64; DALL-E defaults to URLs.
        if model.startswith("dall-e"):
            request_payload["response_format"] = "b64_json"

        response = await self.client.images.generate(**request_payload)
        if not response.data or not response.data[0].b64_json:
            raise RuntimeError("OpenAI returned no image data")
        return base64.b64decode(response.data[0].b64_json)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
