import base64
import logging

import httpx
import pytest

from clayquest.images import ImageProviderRegistry
from clayquest.providers.base import ImageGenerationOptions, ProviderImage
from conftest import FakeImageProvider, make_png


def _registry(store, primary, fallback=None, **providers):
    return ImageProviderRegistry(
        providers,
        store=store,
        primary=primary,
        fallback=fallback,
    )


@pytest.mark.asyncio
async def test_primary_success_is_persisted_locally(store):
    freepik = FakeImageProvider("freepik")
    registry = _registry(store, "freepik", freepik=freepik)

    image = await registry.generate_image(ImageGenerationOptions(prompt="a frog"))

    assert image.provider == "freepik"
    assert image.cached
    assert image.url.startswith("/temp/images/freepik_")
    filename = image.url.rsplit("/", 1)[1]
    assert (store.images_dir / filename).read_bytes().startswith(b"\x89PNG")


@pytest.mark.asyncio
async def test_unavailable_primary_is_never_called(store):
    primary = FakeImageProvider("freepik", available=False)
    fallback = FakeImageProvider("gemini")
    registry = _registry(store, "freepik", "gemini", freepik=primary, gemini=fallback)

    assert registry.select_active() is fallback
    image = await registry.generate_image(ImageGenerationOptions(prompt="a frog"))

    assert primary.calls == 0
    assert fallback.calls == 1
    assert image.provider == "gemini"


@pytest.mark.asyncio
async def test_primary_failure_gets_one_fallback_attempt(store):
    primary = FakeImageProvider("freepik", error=RuntimeError("500 from upstream"))
    fallback = FakeImageProvider("gemini")
    registry = _registry(store, "freepik", "gemini", freepik=primary, gemini=fallback)

    image = await registry.generate_image(ImageGenerationOptions(prompt="a frog"))

    assert primary.calls == 1
    assert fallback.calls == 1
    assert image.provider == "gemini"


@pytest.mark.asyncio
async def test_both_failing_ends_at_placeholder(store):
    primary = FakeImageProvider("freepik", error=RuntimeError("down"))
    fallback = FakeImageProvider("gemini", error=RuntimeError("also down"))
    registry = _registry(store, "freepik", "gemini", freepik=primary, gemini=fallback)

    image = await registry.generate_image(ImageGenerationOptions(prompt="a frog"))

    assert primary.calls == 1
    assert fallback.calls == 1
    assert image.provider == "placeholder"
    assert image.url.startswith("https://picsum.photos/seed/")
    assert not image.cached
    assert list(store.images_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_nothing_configured_selects_placeholder(store):
    registry = _registry(store, "freepik", freepik=FakeImageProvider("freepik", available=False))
    assert registry.select_active().name == "placeholder"
    assert registry.provider_status() == {
        "freepik": {"available": False},
        "placeholder": {"available": True},
    }


def test_active_name_does_not_log(store, caplog):
    registry = _registry(store, "freepik", freepik=FakeImageProvider("freepik", available=False))

    with caplog.at_level(logging.DEBUG, logger="clayquest.images"):
        assert registry.active_name() == "placeholder"
    assert caplog.records == []

    with caplog.at_level(logging.WARNING, logger="clayquest.images"):
        registry.select_active()
    assert "using placeholder" in caplog.text


def test_unknown_primary_falls_back_to_placeholder(store):
    registry = _registry(store, "midjourney")
    assert registry.primary == "placeholder"


@pytest.mark.asyncio
async def test_data_url_results_are_decoded(store):
    png = make_png()
    data_url = "data:image/png;base64," + base64.b64encode(png).decode()
    provider = FakeImageProvider("gemini", result=ProviderImage(provider="gemini", url=data_url))
    registry = _registry(store, "gemini", gemini=provider)

    image = await registry.generate_image(ImageGenerationOptions(prompt="x"))

    assert image.cached
    assert (store.images_dir / image.url.rsplit("/", 1)[1]).read_bytes() == png


@pytest.mark.asyncio
async def test_remote_urls_are_downloaded(store):
    png = make_png(color=(1, 2, 3))
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, content=png)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = FakeImageProvider(
        "freepik",
        result=ProviderImage(provider="freepik", url="https://cdn.example.com/out.png"),
    )
    registry = ImageProviderRegistry({"freepik": provider}, store=store, primary="freepik", http_client=http)

    image = await registry.generate_image(ImageGenerationOptions(prompt="x"))
    await http.aclose()

    assert seen == ["https://cdn.example.com/out.png"]
    assert image.url.startswith("/temp/images/freepik_")


@pytest.mark.asyncio
async def test_failed_download_returns_remote_url(store):
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(403)))
    provider = FakeImageProvider(
        "freepik",
        result=ProviderImage(provider="freepik", url="https://cdn.example.com/out.png"),
    )
    registry = ImageProviderRegistry({"freepik": provider}, store=store, primary="freepik", http_client=http)

    image = await registry.generate_image(ImageGenerationOptions(prompt="x"))
    await http.aclose()

    assert image.url == "https://cdn.example.com/out.png"
    assert image.provider == "freepik"
    assert not image.cached


@pytest.mark.asyncio
async def test_filenames_are_unique(store):
    registry = _registry(store, "gemini", gemini=FakeImageProvider("gemini"))
    urls = {(await registry.generate_image(ImageGenerationOptions(prompt="x"))).url for _ in range(5)}
    assert len(urls) == 5
