from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any

import httpx

from clayquest.config import has_credential
from clayquest.errors import ConfigurationError, ProviderError, ProviderTimeoutError
from clayquest.providers.base import ImageGenerationOptions, ProviderImage

logger = logging.getLogger(__name__)

API_BASE = "https://api.freepik.com/v1/ai/mystic"

_ASPECT_RATIOS = {
    "4:3": "classic_4_3",
    "16:9": "widescreen_16_9",
    "1:1": "square_1_1",
    "3:4": "traditional_3_4",
}


class FreepikProvider:
    """
    Freepik Mystic: submit a generation task, then poll it until it is
    COMPLETED or FAILED. Optional reference image is sent as a structure
    reference.
    """

    name = "freepik"

    def __init__(
        self,
        api_key: str | None,
        poll_interval_s: float = 2.0,
        max_poll_attempts: int = 60,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self.poll_interval_s = poll_interval_s
        self.max_poll_attempts = max_poll_attempts
        self._http = http_client

    def is_available(self) -> bool:
        return has_credential(self._api_key)

    def _headers(self) -> dict[str, str]:
        return {"x-freepik-api-key": self._api_key or ""}

    async def generate(self, options: ImageGenerationOptions) -> ProviderImage:
        if not self.is_available():
            raise ConfigurationError("Freepik API key not configured")

        if self._http is not None:
            url = await self._create_and_wait(self._http, options)
        else:
            async with httpx.AsyncClient(timeout=30) as client:
                url = await self._create_and_wait(client, options)
        return ProviderImage(provider=self.name, url=url)

    async def _create_and_wait(self, client: httpx.AsyncClient, options: ImageGenerationOptions) -> str:
        task_id = await self._create_task(client, options)
        logger.info("Freepik task %s created", task_id)
        return await self._wait_for_completion(client, task_id)

    async def _create_task(self, client: httpx.AsyncClient, options: ImageGenerationOptions) -> str:
        body: dict[str, Any] = {
            "prompt": options.prompt,
            "resolution": "2k",
            "aspect_ratio": _ASPECT_RATIOS[options.aspect_ratio],
            "model": "flexible",
            "filter_nsfw": True,
        }
        if options.reference_image:
            body["structure"] = {
                "image_base64": base64.b64encode(options.reference_image).decode("ascii"),
                "strength": options.reference_strength if options.reference_strength is not None else 70,
            }

        r = await client.post(API_BASE, headers={**self._headers(), "Content-Type": "application/json"}, json=body)
        if r.status_code >= 400:
            raise ProviderError(self.name, f"create failed {r.status_code}: {r.text}")
        try:
            return r.json()["data"]["task_id"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ProviderError(self.name, "create response has no task_id") from exc

    async def _wait_for_completion(self, client: httpx.AsyncClient, task_id: str) -> str:
        for attempt in range(1, self.max_poll_attempts + 1):
            r = await client.get(f"{API_BASE}/{task_id}", headers=self._headers())
            if r.status_code >= 400:
                raise ProviderError(self.name, f"status failed {r.status_code}: {r.text}")
            data = (r.json() or {}).get("data") or {}
            status = data.get("status")
            logger.debug("Freepik task %s status %s (attempt %d)", task_id, status, attempt)

            if status == "COMPLETED":
                generated = data.get("generated") or []
                if generated:
                    return generated[0]
                raise ProviderError(self.name, "task completed without an image")
            if status == "FAILED":
                raise ProviderError(self.name, "image generation failed")

            await asyncio.sleep(self.poll_interval_s)

        raise ProviderTimeoutError(
            self.name,
            f"task {task_id} not finished after {self.max_poll_attempts} polls",
        )
