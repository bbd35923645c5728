from __future__ import annotations

import logging

from pydantic import ValidationError

from clayquest.errors import OutlineError
from clayquest.models import GenerationRequest, StoryOutline
from clayquest.prompts import STORY_PROMPT, STORY_RETRY_NOTE
from clayquest.vision import VisionDescriber, VisionResult

logger = logging.getLogger(__name__)


def _summarize(exc: ValidationError) -> str:
    parts = []
    for e in exc.errors():
        loc = ".".join(str(p) for p in e["loc"]) or "outline"
        parts.append(f"{loc}: {e['msg']}")
    return "; ".join(parts)


def validate_outline(result: VisionResult) -> StoryOutline:
    if result.extracted is None:
        raise OutlineError(f"could not parse story JSON ({result.extraction_error or 'no JSON found'})")
    try:
        return StoryOutline.model_validate(result.extracted)
    except ValidationError as exc:
        raise OutlineError(f"story outline is invalid: {_summarize(exc)}") from exc


class StoryOutliner:
    """
    Asks the vision model for a 4-page story about the figurine. An answer that
    doesn't validate is re-prompted up to `attempts` times in total.
    """

    def __init__(self, describer: VisionDescriber, attempts: int = 2) -> None:
        self.describer = describer
        self.attempts = max(1, attempts)

    async def create_outline(self, request: GenerationRequest) -> StoryOutline:
        prompt = STORY_PROMPT
        last_error: OutlineError | None = None

        for attempt in range(1, self.attempts + 1):
            # DescribeError is not a shape problem; let it abort.
            result = await self.describer.describe(request, prompt)
            try:
                outline = validate_outline(result)
            except OutlineError as exc:
                logger.warning("Outline attempt %d/%d rejected: %s", attempt, self.attempts, exc)
                last_error = exc
                prompt = STORY_PROMPT + STORY_RETRY_NOTE.format(problem=exc)
                continue
            logger.info("Story outline created: %s", outline.title)
            return outline

        assert last_error is not None
        raise last_error
