# tests/conftest.py
import json
from io import BytesIO

import pytest
from PIL import Image

from clayquest.errors import ModelUnavailableError
from clayquest.models import GenerationRequest
from clayquest.providers.base import ProviderImage, VisionResponse
from clayquest.storage import AssetStore


def make_png(color=(200, 80, 40), size=(4, 3)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def outline_json(pages=4) -> str:
    return json.dumps(
        {
            "title": "Blobby's Big Day",
            "characterDescription": "a round orange clay blob with two black dots for eyes",
            "pages": [{"text": f"Page {i} text.", "imagePrompt": f"scene {i}"} for i in range(1, pages + 1)],
        }
    )


class FakeVisionClient:
    name = "fake"

    def __init__(self, answers=None, unavailable=(), error=None):
        # answers: list of strings returned in order (last one repeats)
        self.answers = list(answers or ["{}"])
        self.unavailable = set(unavailable)
        self.error = error
        self.calls = []

    async def complete(self, model, image_bytes, mime_type, prompt):
        self.calls.append({"model": model, "prompt": prompt, "mime_type": mime_type})
        if model in self.unavailable:
            raise ModelUnavailableError(model)
        if self.error is not None:
            raise self.error
        text = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        return VisionResponse(model=model, text_blocks=[text])


class FakeImageProvider:
    def __init__(self, name, available=True, result=None, error=None):
        self.name = name
        self.available = available
        self.result = result
        self.error = error
        self.calls = 0

    def is_available(self):
        return self.available

    async def generate(self, options):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result or ProviderImage(provider=self.name, data=make_png())


class FakeSynthesizer:
    name = "fake-tts"

    def __init__(self, available=True, audio=b"ID3fake-mp3", error=None):
        self.available = available
        self.audio = audio
        self.error = error
        self.calls = 0

    def is_available(self):
        return self.available

    async def synthesize(self, text):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.audio


@pytest.fixture
def store(tmp_path):
    return AssetStore(tmp_path)


@pytest.fixture
def request_image():
    return GenerationRequest(image_bytes=make_png(), mime_type="image/png")
