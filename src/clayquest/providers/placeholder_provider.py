from __future__ import annotations

from clayquest.providers.base import ImageGenerationOptions, ProviderImage

_DEFAULT_SIZES: dict[str, tuple[int, int]] = {
    "4:3": (800, 600),
    "16:9": (960, 540),
    "1:1": (600, 600),
    "3:4": (600, 800),
}


def prompt_seed(prompt: str) -> int:
    """Stable 32-bit string hash (h = 31*h + c) over UTF-16 code units, made non-negative."""
    data = prompt.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        h = (h * 31 + int.from_bytes(data[i : i + 2], "little")) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


class PlaceholderProvider:
    """Last resort: a stock photo picked deterministically from the prompt."""

    name = "placeholder"

    def __init__(self, sizes: dict[str, tuple[int, int]] | None = None) -> None:
        self.sizes = dict(sizes or _DEFAULT_SIZES)

    def is_available(self) -> bool:
        return True

    def url_for(self, options: ImageGenerationOptions) -> str:
        width, height = self.sizes.get(options.aspect_ratio) or _DEFAULT_SIZES["4:3"]
        return f"https://picsum.photos/seed/{prompt_seed(options.prompt)}/{width}/{height}"

    async def generate(self, options: ImageGenerationOptions) -> ProviderImage:
        return ProviderImage(provider=self.name, url=self.url_for(options))
