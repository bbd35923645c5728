"""
Image provider registry: primary/fallback/placeholder selection plus local
persistence of whatever the chosen provider produced.
"""

from __future__ import annotations

import base64
import binascii
import logging
import time
from typing import Mapping

import httpx

from clayquest.errors import ProviderError
from clayquest.providers.base import GeneratedImage, ImageGenerationOptions, ImageProvider, ProviderImage
from clayquest.providers.placeholder_provider import PlaceholderProvider
from clayquest.storage import AssetStore

logger = logging.getLogger(__name__)

PLACEHOLDER = "placeholder"


class ImageProviderRegistry:
    def __init__(
        self,
        providers: Mapping[str, ImageProvider],
        store: AssetStore,
        primary: str,
        fallback: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.providers: dict[str, ImageProvider] = dict(providers)
        self.providers.setdefault(PLACEHOLDER, PlaceholderProvider())
        if primary not in self.providers:
            logger.warning("Unknown image provider %r, using placeholder", primary)
            primary = PLACEHOLDER
        if fallback is not None and fallback not in self.providers:
            logger.warning("Unknown fallback image provider %r, ignoring", fallback)
            fallback = None
        self.primary = primary
        self.fallback = fallback
        self.store = store
        self._http = http_client

    @property
    def placeholder(self) -> ImageProvider:
        return self.providers[PLACEHOLDER]

    def _active_name(self) -> str:
        if self.providers[self.primary].is_available():
            return self.primary
        if self.fallback and self.providers[self.fallback].is_available():
            return self.fallback
        return PLACEHOLDER

    def active_name(self) -> str:
        """Name of the provider select_active() would pick, without logging."""
        return self._active_name()

    def select_active(self) -> ImageProvider:
        name = self._active_name()
        if name != self.primary:
            logger.warning("Image provider %s not available, using %s", self.primary, name)
        return self.providers[name]

    def provider_status(self) -> dict[str, dict[str, bool]]:
        return {name: {"available": p.is_available()} for name, p in self.providers.items()}

    async def generate_image(self, options: ImageGenerationOptions) -> GeneratedImage:
        """
        Primary, then at most one fallback attempt, then placeholder. Never raises
        for provider failures; the placeholder always answers.
        """
        attempts: list[str] = [self.primary]
        if self.fallback and self.fallback != self.primary:
            attempts.append(self.fallback)

        for name in attempts:
            if name == PLACEHOLDER:
                break
            provider = self.providers[name]
            if not provider.is_available():
                continue
            started = time.monotonic()
            try:
                result = await provider.generate(options)
            except Exception:
                logger.exception("Image provider %s failed", name)
                continue
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.info("Image generated with %s in %dms", result.provider, duration_ms)
            return await self._persist(result, duration_ms)

        if attempts != [PLACEHOLDER]:
            logger.warning("All image providers failed, using placeholder")
        started = time.monotonic()
        result = await self.placeholder.generate(options)
        return GeneratedImage(
            url=result.url or "",
            provider=result.provider,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    async def _persist(self, result: ProviderImage, duration_ms: int) -> GeneratedImage:
        """Store the provider output locally; on failure hand back the provider's own reference."""
        fallback_url = result.url or _to_data_url(result)
        try:
            data = await self._load_bytes(result)
            if data is None:
                return GeneratedImage(url=fallback_url, provider=result.provider, duration_ms=duration_ms)
            url = self.store.save_image(result.provider, data)
        except (OSError, httpx.HTTPError, ProviderError):
            logger.exception("Failed to save image from %s locally", result.provider)
            return GeneratedImage(url=fallback_url, provider=result.provider, duration_ms=duration_ms)
        return GeneratedImage(url=url, provider=result.provider, duration_ms=duration_ms, cached=True)

    async def _load_bytes(self, result: ProviderImage) -> bytes | None:
        if result.data is not None:
            return result.data
        url = result.url or ""
        if url.startswith("data:image"):
            _, _, payload = url.partition(",")
            try:
                return base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ProviderError(result.provider, "invalid base64 image data") from exc
        if url.startswith(("http://", "https://")):
            return await self._download(url)
        # Already local or something we don't know how to fetch.
        return None

    async def _download(self, url: str) -> bytes:
        if self._http is not None:
            r = await self._http.get(url)
        else:
            async with httpx.AsyncClient(timeout=60, follow_redirects=True) as client:
                r = await client.get(url)
        r.raise_for_status()
        return r.content


def _to_data_url(result: ProviderImage) -> str:
    if result.data is None:
        return ""
    return f"data:{result.mime_type};base64,{base64.b64encode(result.data).decode('ascii')}"
