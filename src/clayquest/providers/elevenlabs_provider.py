from __future__ import annotations

import httpx

from clayquest.config import has_credential
from clayquest.errors import ConfigurationError, SpeechSynthesisError

API_BASE = "https://api.elevenlabs.io/v1/text-to-speech"


class ElevenLabsSynthesizer:
    name = "elevenlabs"

    def __init__(
        self,
        api_key: str | None,
        voice_id: str,
        model_id: str = "eleven_multilingual_v2",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self.voice_id = voice_id
        self.model_id = model_id
        self._http = http_client

    def is_available(self) -> bool:
        return has_credential(self._api_key) and bool(self.voice_id)

    async def synthesize(self, text: str) -> bytes:
        if not self.is_available():
            raise ConfigurationError("ELEVENLABS_API_KEY is not set")

        payload = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {
                "stability": 0.5,
                "similarity_boost": 0.75,
                "style": 0.5,
                "use_speaker_boost": True,
            },
        }
        headers = {"xi-api-key": self._api_key or "", "Content-Type": "application/json"}
        url = f"{API_BASE}/{self.voice_id}"

        if self._http is not None:
            r = await self._http.post(url, headers=headers, json=payload)
        else:
            async with httpx.AsyncClient(timeout=60) as client:
                r = await client.post(url, headers=headers, json=payload)

        if r.status_code >= 400:
            raise SpeechSynthesisError(f"ElevenLabs error {r.status_code}: {r.text[:200]}", status_code=r.status_code)
        if not r.content:
            raise SpeechSynthesisError("ElevenLabs returned no audio", status_code=r.status_code)
        return r.content
