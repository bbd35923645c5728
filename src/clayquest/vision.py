from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Sequence

from clayquest.errors import DescribeError, ExtractionError, ModelUnavailableError
from clayquest.extraction import extract_json_object, parse_character_profile
from clayquest.models import CharacterProfile, GenerationRequest
from clayquest.prompts import CHARACTER_PROMPT
from clayquest.providers.base import VisionClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisionResult:
    text: str
    model: str
    extracted: dict[str, Any] | None = None
    extraction_error: str | None = None


@dataclass(frozen=True)
class CharacterDescription:
    description: str
    character: CharacterProfile | None
    error: str | None = None


class VisionDescriber:
    """
    Sends an image and an instruction to a vision model, walking down a list
    of model ids until one exists.
    """

    def __init__(
        self,
        client: VisionClient,
        model_candidates: Sequence[str],
        call_timeout_s: float | None = 30.0,
    ) -> None:
        if not model_candidates:
            raise ValueError("at least one vision model candidate is required")
        self.client = client
        self.model_candidates = list(model_candidates)
        self.call_timeout_s = call_timeout_s

    async def describe(
        self,
        request: GenerationRequest,
        prompt: str,
        model_candidates: Sequence[str] | None = None,
        expect_json: bool = True,
    ) -> VisionResult:
        candidates = list(model_candidates or self.model_candidates)
        last_unavailable: ModelUnavailableError | None = None

        for model in candidates:
            try:
                resp = await asyncio.wait_for(
                    self.client.complete(model, request.image_bytes, request.mime_type, prompt),
                    timeout=self.call_timeout_s,
                )
            except ModelUnavailableError as exc:
                logger.info("Vision model %s unavailable, trying next candidate", model)
                last_unavailable = exc
                continue
            except asyncio.TimeoutError as exc:
                raise DescribeError(f"vision model {model} timed out after {self.call_timeout_s}s") from exc
            except Exception as exc:
                raise DescribeError(f"vision call to {model} failed: {exc}") from exc

            if not resp.text_blocks:
                raise DescribeError(f"no text response from {model}")
            text = resp.text_blocks[0]
            logger.info("Vision model %s answered (%d chars)", model, len(text))

            if not expect_json:
                return VisionResult(text=text, model=model)
            try:
                extracted = extract_json_object(text)
            except ExtractionError as exc:
                logger.warning("Could not extract JSON from %s output: %s", model, exc)
                return VisionResult(text=text, model=model, extraction_error=str(exc))
            return VisionResult(text=text, model=model, extracted=extracted)

        detail = f": {last_unavailable}" if last_unavailable else ""
        raise DescribeError(f"none of the vision models are available{detail}") from last_unavailable

    async def describe_character(self, request: GenerationRequest) -> CharacterDescription:
        """
        Short structured description of the figurine. A parse failure keeps the raw
        text and reports why, rather than failing the call.
        """
        result = await self.describe(request, CHARACTER_PROMPT, expect_json=False)
        try:
            profile = parse_character_profile(result.text)
        except ExtractionError as exc:
            return CharacterDescription(description=result.text, character=None, error=str(exc))
        return CharacterDescription(description=result.text, character=profile)
