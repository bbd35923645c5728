import asyncio
import gc

import pytest

from clayquest.errors import SpeechSynthesisError
from clayquest.narration import NarrationCache, narration_key
from clayquest.utils import gather_bounded
from conftest import FakeSynthesizer


def test_key_is_hash_prefix_plus_page():
    key = narration_key("Once upon a time", 2)
    digest, page = key.split("_p")
    assert len(digest) == 12
    assert page == "2"
    assert narration_key("Once upon a time", 2) == key
    assert narration_key("Once upon a time", 3) != key


@pytest.mark.asyncio
async def test_second_call_uses_cache(store):
    synth = FakeSynthesizer()
    cache = NarrationCache(store, synth)

    first = await cache.get_audio_url("The frog hopped.", 0)
    second = await cache.get_audio_url("The frog hopped.", 0)

    assert synth.calls == 1
    assert first.audio_url == second.audio_url
    assert first.audio_url == f"/temp/audio/{narration_key('The frog hopped.', 0)}.mp3"
    assert store.audio_path(narration_key("The frog hopped.", 0)).read_bytes() == b"ID3fake-mp3"


@pytest.mark.asyncio
async def test_deleted_file_is_synthesized_again(store):
    synth = FakeSynthesizer()
    cache = NarrationCache(store, synth)
    key = narration_key("The frog hopped.", 0)

    first = await cache.get_audio_url("The frog hopped.", 0)
    store.audio_path(key).unlink()
    second = await cache.get_audio_url("The frog hopped.", 0)

    assert synth.calls == 2
    assert second.audio_url == first.audio_url
    assert store.audio_path(key).exists()


@pytest.mark.asyncio
async def test_file_on_disk_is_reused_across_instances(store):
    synth = FakeSynthesizer()
    await NarrationCache(store, synth).get_audio_url("Same text", 1)

    other = FakeSynthesizer()
    result = await NarrationCache(store, other).get_audio_url("Same text", 1)

    assert other.calls == 0
    assert result.audio_url.endswith("_p1.mp3")


@pytest.mark.asyncio
async def test_missing_credential_signals_local_fallback(store):
    result = await NarrationCache(store, FakeSynthesizer(available=False)).get_audio_url("Hi", 0)
    assert result.use_local_fallback
    assert result.to_payload() == {"useWebSpeech": True}

    result = await NarrationCache(store, None).get_audio_url("Hi", 0)
    assert result.use_local_fallback


@pytest.mark.asyncio
async def test_backend_failure_signals_local_fallback(store):
    synth = FakeSynthesizer(error=SpeechSynthesisError("ElevenLabs error 500", status_code=500))
    result = await NarrationCache(store, synth).get_audio_url("Hi", 0)
    assert result.use_local_fallback
    assert list(store.audio_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_concurrent_requests_for_same_key_call_backend_once(store):
    class SlowSynth(FakeSynthesizer):
        async def synthesize(self, text):
            await asyncio.sleep(0.01)
            return await super().synthesize(text)

    synth = SlowSynth()
    cache = NarrationCache(store, synth)

    results = await asyncio.gather(*(cache.get_audio_url("Same", 0) for _ in range(4)))

    assert synth.calls == 1
    assert len({r.audio_url for r in results}) == 1

    await cache.preload(["a", "b", "c"])
    gc.collect()
    assert len(cache._locks) == 0


@pytest.mark.asyncio
async def test_preload_returns_results_in_page_order(store):
    synth = FakeSynthesizer()
    cache = NarrationCache(store, synth)

    results = await cache.preload(["one", "two", "three", "four"], concurrency=2)

    assert synth.calls == 4
    assert [r.audio_url.rsplit("_p", 1)[1] for r in results] == ["0.mp3", "1.mp3", "2.mp3", "3.mp3"]


@pytest.mark.asyncio
async def test_gather_bounded_limits_in_flight():
    in_flight = 0
    peak = 0

    async def work(i):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return i

    results = await gather_bounded([lambda i=i: work(i) for i in range(6)], limit=2)

    assert results == list(range(6))
    assert peak == 2
