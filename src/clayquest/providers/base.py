from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Protocol, get_args

AspectRatio = Literal["4:3", "16:9", "1:1", "3:4"]
ASPECT_RATIOS: tuple[str, ...] = get_args(AspectRatio)


@dataclass(frozen=True)
class ImageGenerationOptions:
    prompt: str
    aspect_ratio: AspectRatio = "4:3"
    # Raw image bytes for style/structure transfer.
    reference_image: bytes | None = None
    # How closely to follow the reference (0-100).
    reference_strength: int | None = None

    def __post_init__(self) -> None:
        if self.aspect_ratio not in ASPECT_RATIOS:
            raise ValueError(f"unsupported aspect ratio {self.aspect_ratio!r}")
        if self.reference_strength is not None and not 0 <= self.reference_strength <= 100:
            raise ValueError("reference_strength must be between 0 and 100")


@dataclass(frozen=True)
class ProviderImage:
    """A provider's answer: either a remote/data URL or inline bytes."""

    provider: str
    url: str | None = None
    data: bytes | None = None
    mime_type: str = "image/png"


@dataclass(frozen=True)
class GeneratedImage:
    url: str
    provider: str
    duration_ms: int
    # False when the url is the provider's own reference (placeholder, or a failed local save).
    cached: bool = False


@dataclass(frozen=True)
class VisionResponse:
    model: str
    text_blocks: list[str] = field(default_factory=list)


class ImageProvider(Protocol):
    name: str

    def is_available(self) -> bool: ...

    async def generate(self, options: ImageGenerationOptions) -> ProviderImage: ...


class VisionClient(Protocol):
    name: str

    async def complete(
        self,
        model: str,
        image_bytes: bytes,
        mime_type: str,
        prompt: str,
    ) -> VisionResponse:
        """
        Send one image plus an instruction. Raises ModelUnavailableError when
        `model` doesn't exist for this account; any other failure propagates as-is.
        """
        ...


class SpeechSynthesizer(Protocol):
    name: str

    def is_available(self) -> bool: ...

    async def synthesize(self, text: str) -> bytes: ...
