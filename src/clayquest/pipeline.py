from __future__ import annotations

import asyncio
import logging

from clayquest.errors import DescribeError, OutlineError, PipelineError
from clayquest.images import ImageProviderRegistry
from clayquest.models import GenerationRequest, Story, StoryOutline, StoryPage
from clayquest.outline import StoryOutliner
from clayquest.prompts import page_image_prompt
from clayquest.providers.base import AspectRatio, GeneratedImage, ImageGenerationOptions

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """
    photo -> outline -> one illustration per page (concurrently) -> Story.

    Narration is not part of this flow; pages leave here with an empty
    audio_url and are narrated on demand through NarrationCache.
    """

    def __init__(
        self,
        outliner: StoryOutliner,
        images: ImageProviderRegistry,
        aspect_ratio: AspectRatio = "4:3",
    ) -> None:
        self.outliner = outliner
        self.images = images
        self.aspect_ratio = aspect_ratio

    async def generate_story(self, request: GenerationRequest) -> Story:
        logger.info("Step 1: analyzing image and creating story outline")
        try:
            outline = await self.outliner.create_outline(request)
        except (DescribeError, OutlineError) as exc:
            raise PipelineError(str(exc)) from exc

        logger.info("Step 2: generating %d illustrations", len(outline.pages))
        images = await asyncio.gather(*(self._page_image(outline, i) for i in range(len(outline.pages))))

        pages = [
            StoryPage(id=i + 1, text=page.text, image_url=image.url)
            for i, (page, image) in enumerate(zip(outline.pages, images))
        ]
        return Story(title=outline.title, pages=pages)

    async def _page_image(self, outline: StoryOutline, index: int) -> GeneratedImage:
        page = outline.pages[index]
        prompt = page_image_prompt(outline.character_description, page.image_prompt)
        options: ImageGenerationOptions | None = None
        try:
            options = ImageGenerationOptions(prompt=prompt, aspect_ratio=self.aspect_ratio)
            image = await self.images.generate_image(options)
        except Exception:
            # One page's trouble must not sink the other three.
            logger.exception("Image for page %d failed, using placeholder", index + 1)
            fallback = await self.images.placeholder.generate(options or ImageGenerationOptions(prompt=prompt))
            return GeneratedImage(url=fallback.url or "", provider=fallback.provider, duration_ms=0)
        logger.info("Page %d illustrated by %s", index + 1, image.provider)
        return image
