from __future__ import annotations

import base64
from typing import Any

from clayquest.config import has_credential
from clayquest.errors import ConfigurationError, ProviderError
from clayquest.providers.base import ImageGenerationOptions, ProviderImage

# gpt-image-1 only accepts these three sizes; pick the closest orientation.
_SIZES = {
    "4:3": "1536x1024",
    "16:9": "1536x1024",
    "1:1": "1024x1024",
    "3:4": "1024x1536",
}


class OpenAIImageProvider:
    name = "openai"

    def __init__(self, api_key: str | None, model: str = "gpt-image-1", client: Any | None = None) -> None:
        self._api_key = api_key
        self.model = model
        self._client = client

    def is_available(self) -> bool:
        return self._client is not None or has_credential(self._api_key)

    @property
    def client(self) -> Any:
        if self._client is None:
            if not has_credential(self._api_key):
                raise ConfigurationError("OpenAI API key not configured")
            from openai import AsyncOpenAI  # type: ignore

            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def generate(self, options: ImageGenerationOptions) -> ProviderImage:
        resp = await self.client.images.generate(
            model=self.model,
            prompt=options.prompt,
            size=_SIZES[options.aspect_ratio],
            n=1,
        )

        data = getattr(resp, "data", None) or []
        if not data:
            raise ProviderError(self.name, "no image in response")
        first = data[0]

        # gpt-image models always answer with base64; dall-e answers with a URL by default.
        b64 = getattr(first, "b64_json", None)
        if b64:
            try:
                return ProviderImage(provider=self.name, data=base64.b64decode(b64))
            except ValueError as exc:
                raise ProviderError(self.name, "response image is not valid base64") from exc
        url = getattr(first, "url", None)
        if url:
            return ProviderImage(provider=self.name, url=url)
        raise ProviderError(self.name, "no image in response")
