from __future__ import annotations

import base64
import binascii
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

STORY_PAGE_COUNT = 4

_DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,", re.IGNORECASE)


@dataclass(frozen=True)
class GenerationRequest:
    image_bytes: bytes
    mime_type: str = "image/jpeg"

    @classmethod
    def from_base64(cls, value: str) -> "GenerationRequest":
        """
        Accepts either a data URL (`data:image/png;base64,...`) or bare base64.
        Bare base64 is assumed to be JPEG, which is what browser captures produce.
        """
        s = (value or "").strip()
        if not s:
            raise ValueError("image is empty")
        mime_type = "image/jpeg"
        m = _DATA_URL_RE.match(s)
        if m:
            mime_type = m.group(1).lower()
            s = s[m.end() :]
        try:
            data = base64.b64decode(s, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("image is not valid base64") from exc
        if not data:
            raise ValueError("image is empty")
        return cls(image_bytes=data, mime_type=mime_type)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CharacterProfile(_CamelModel):
    name: str
    color: str
    shape: str
    character_traits: list[str]
    tone: str


class OutlinePage(_CamelModel):
    text: str
    image_prompt: str

    @field_validator("text", "image_prompt")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class StoryOutline(_CamelModel):
    title: str
    character_description: str = "a cute clay character"
    pages: list[OutlinePage]

    @field_validator("character_description", mode="before")
    @classmethod
    def _default_description(cls, v: object) -> object:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "a cute clay character"
        return v

    @field_validator("pages")
    @classmethod
    def _exactly_four(cls, v: list[OutlinePage]) -> list[OutlinePage]:
        if len(v) != STORY_PAGE_COUNT:
            raise ValueError(f"expected exactly {STORY_PAGE_COUNT} pages, got {len(v)}")
        return v


class StoryPage(_CamelModel):
    id: int
    text: str
    image_url: str
    audio_url: str = ""


class Story(_CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    pages: list[StoryPage]
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
