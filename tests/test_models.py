import base64
import json

import pytest
from pydantic import ValidationError

from clayquest.models import GenerationRequest, Story, StoryOutline, StoryPage
from clayquest.providers.base import ImageGenerationOptions
from conftest import outline_json


def test_generation_request_from_data_url():
    payload = base64.b64encode(b"\x89PNG-bytes").decode()
    req = GenerationRequest.from_base64(f"data:image/png;base64,{payload}")
    assert req.image_bytes == b"\x89PNG-bytes"
    assert req.mime_type == "image/png"


def test_generation_request_from_raw_base64_defaults_to_jpeg():
    req = GenerationRequest.from_base64(base64.b64encode(b"jpeg!").decode())
    assert req.mime_type == "image/jpeg"


@pytest.mark.parametrize("value", ["", "   ", "not base64 at all!"])
def test_generation_request_rejects_bad_input(value):
    with pytest.raises(ValueError):
        GenerationRequest.from_base64(value)


def test_outline_accepts_camel_case_and_defaults_description():
    data = json.loads(outline_json())
    del data["characterDescription"]
    outline = StoryOutline.model_validate(data)
    assert outline.character_description == "a cute clay character"
    assert outline.pages[2].image_prompt == "scene 3"


@pytest.mark.parametrize("pages", [3, 5])
def test_outline_requires_exactly_four_pages(pages):
    with pytest.raises(ValidationError):
        StoryOutline.model_validate(json.loads(outline_json(pages)))


def test_story_serializes_with_camel_case_keys():
    story = Story(title="T", pages=[StoryPage(id=1, text="hi", image_url="/temp/images/a.png")])
    dumped = story.model_dump(by_alias=True, mode="json")
    assert set(dumped) == {"id", "title", "pages", "createdAt"}
    assert dumped["pages"][0] == {"id": 1, "text": "hi", "imageUrl": "/temp/images/a.png", "audioUrl": ""}


def test_image_options_validation():
    with pytest.raises(ValueError):
        ImageGenerationOptions(prompt="x", aspect_ratio="2:1")
    with pytest.raises(ValueError):
        ImageGenerationOptions(prompt="x", reference_strength=101)
    assert ImageGenerationOptions(prompt="x", reference_strength=0).reference_strength == 0
