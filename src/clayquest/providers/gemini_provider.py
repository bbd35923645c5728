from __future__ import annotations

import logging
from typing import Any

from clayquest.config import has_credential
from clayquest.errors import ConfigurationError, ModelUnavailableError, ProviderError
from clayquest.providers.base import ImageGenerationOptions, ProviderImage, VisionResponse

logger = logging.getLogger(__name__)


def _make_client(api_key: str) -> Any:
    # Imported lazily so the app can start without the dependency installed.
    from google import genai  # type: ignore

    return genai.Client(api_key=api_key)


def _is_model_not_found(exc: Exception) -> bool:
    from google.genai import errors  # type: ignore

    if not isinstance(exc, errors.ClientError):
        return False
    return getattr(exc, "code", None) == 404 or getattr(exc, "status", None) == "NOT_FOUND"


class GeminiVisionClient:
    name = "gemini"

    def __init__(self, api_key: str | None, max_output_tokens: int = 2000, client: Any | None = None) -> None:
        self._api_key = api_key
        self._max_output_tokens = max_output_tokens
        self._client = client

    def is_available(self) -> bool:
        return self._client is not None or has_credential(self._api_key)

    @property
    def client(self) -> Any:
        if self._client is None:
            if not has_credential(self._api_key):
                raise ConfigurationError("GEMINI_API_KEY is not set")
            self._client = _make_client(self._api_key or "")
        return self._client

    async def complete(self, model: str, image_bytes: bytes, mime_type: str, prompt: str) -> VisionResponse:
        from google.genai import types  # type: ignore

        contents: list[Any] = [
            types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
            prompt,
        ]
        try:
            resp = await self.client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=types.GenerateContentConfig(max_output_tokens=self._max_output_tokens),
            )
        except Exception as exc:
            if _is_model_not_found(exc):
                raise ModelUnavailableError(model, str(exc)) from exc
            raise

        return VisionResponse(model=model, text_blocks=_extract_text_blocks(resp))


class GeminiImageProvider:
    """Imagen via the Gemini API. Returns inline PNG bytes in a single call."""

    name = "gemini"

    def __init__(self, api_key: str | None, model: str = "imagen-4.0-generate-001", client: Any | None = None) -> None:
        self._api_key = api_key
        self.model = model
        self._client = client

    def is_available(self) -> bool:
        return self._client is not None or has_credential(self._api_key)

    async def generate(self, options: ImageGenerationOptions) -> ProviderImage:
        from google.genai import types  # type: ignore

        if not self.is_available():
            raise ConfigurationError("Gemini API key not configured")
        if self._client is None:
            self._client = _make_client(self._api_key or "")

        # Imagen takes the same ratio strings we use.
        resp = await self._client.aio.models.generate_images(
            model=self.model,
            prompt=options.prompt,
            config=types.GenerateImagesConfig(
                number_of_images=1,
                aspect_ratio=options.aspect_ratio,
            ),
        )
        for gi in getattr(resp, "generated_images", []) or []:
            image = getattr(gi, "image", None)
            img_bytes = getattr(image, "image_bytes", None)
            if img_bytes:
                mime = getattr(image, "mime_type", None) or "image/png"
                return ProviderImage(provider=self.name, data=img_bytes, mime_type=mime)

        raise ProviderError(self.name, "no image in response")


def _extract_text_blocks(resp: Any) -> list[str]:
    out: list[str] = []
    for cand in getattr(resp, "candidates", []) or []:
        content = getattr(cand, "content", None)
        for part in getattr(content, "parts", None) or []:
            text = getattr(part, "text", None)
            if text:
                out.append(text)
    if not out:
        text = getattr(resp, "text", None)
        if text:
            out.append(text)
    return out
