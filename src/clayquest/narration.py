from __future__ import annotations

import asyncio
import hashlib
import logging
import weakref
from dataclasses import dataclass
from typing import Sequence

from clayquest.providers.base import SpeechSynthesizer
from clayquest.storage import AssetStore
from clayquest.utils import gather_bounded

logger = logging.getLogger(__name__)


def narration_key(text: str, page_index: int) -> str:
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
    return f"{digest}_p{page_index}"


@dataclass(frozen=True)
class NarrationResult:
    audio_url: str | None = None
    use_local_fallback: bool = False

    def to_payload(self) -> dict[str, object]:
        if self.use_local_fallback or not self.audio_url:
            return {"useWebSpeech": True}
        return {"audioUrl": self.audio_url}


FALLBACK = NarrationResult(use_local_fallback=True)


class NarrationCache:
    """
    Content-addressed narration audio. Identical (text, page) pairs reuse the
    same file across requests; the synthesizer is only called on a miss.
    """

    def __init__(self, store: AssetStore, synthesizer: SpeechSynthesizer | None) -> None:
        self.store = store
        self.synthesizer = synthesizer
        # Entries vanish once no coroutine holds or waits on the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _cached_url(self, key: str) -> str | None:
        # The audio dir is an ephemeral cache, so only a file on disk counts as a hit.
        if self.store.audio_path(key).is_file():
            return self.store.audio_url(key)
        return None

    async def get_audio_url(self, text: str, page_index: int) -> NarrationResult:
        """Never raises: every failure becomes the local-voice fallback signal."""
        try:
            return await self._get_audio_url(text, page_index)
        except Exception:
            logger.exception("Narration for page %s failed, falling back to local voice", page_index)
            return FALLBACK

    async def _get_audio_url(self, text: str, page_index: int) -> NarrationResult:
        key = narration_key(text, page_index)

        url = self._cached_url(key)
        if url is not None:
            logger.info("Narration cache hit for %s", key)
            return NarrationResult(audio_url=url)

        if self.synthesizer is None or not self.synthesizer.is_available():
            logger.info("No speech synthesizer configured, falling back to local voice")
            return FALLBACK

        async with self._lock_for(key):
            # Someone else may have produced it while we waited.
            url = self._cached_url(key)
            if url is not None:
                return NarrationResult(audio_url=url)

            logger.info("Synthesizing narration for %s (%d chars)", key, len(text))
            audio = await self.synthesizer.synthesize(text)
            try:
                url = self.store.save_audio(key, audio)
            except OSError:
                logger.exception("Failed to save narration %s", key)
                return FALLBACK
            return NarrationResult(audio_url=url)

    async def preload(self, texts: Sequence[str], concurrency: int = 2) -> list[NarrationResult]:
        """Narrate every page, keeping at most `concurrency` synthesizer calls in flight."""
        factories = [lambda t=t, i=i: self.get_audio_url(t, i) for i, t in enumerate(texts)]
        return await gather_bounded(factories, concurrency)
