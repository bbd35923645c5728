from __future__ import annotations

import asyncio
import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from clayquest.config import settings
from clayquest.errors import ClayQuestError, InvalidFilenameError
from clayquest.models import GenerationRequest
from clayquest.services import Services, build_services
from clayquest.storage import AUDIO, IMAGES, content_type_for

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="ClayQuest story generator")

CACHE_HEADERS = {"Cache-Control": "public, max-age=31536000, immutable"}


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services(settings)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


class ImageBody(BaseModel):
    image: str | None = None


class NarrationBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str | None = None
    page_index: int = Field(default=0, alias="pageIndex", ge=0)


class PreloadBody(BaseModel):
    texts: list[str] = Field(default_factory=list)


@app.exception_handler(RequestValidationError)
async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error("Invalid request body", 400)


@app.exception_handler(Exception)
async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _error("Internal server error", 500)


def _parse_image(body: ImageBody) -> GenerationRequest | JSONResponse:
    if not body.image:
        return _error("No image provided", 400)
    try:
        return GenerationRequest.from_base64(body.image)
    except ValueError as exc:
        return _error(str(exc), 400)


@app.get("/health")
def health(services: Services = Depends(get_services)):
    return {
        "ok": True,
        "providers": services.images.provider_status(),
        "active_provider": services.images.active_name(),
        "narration": services.narration.synthesizer is not None and services.narration.synthesizer.is_available(),
    }


@app.post("/api/generate")
async def generate(body: ImageBody, services: Services = Depends(get_services)):
    request = _parse_image(body)
    if isinstance(request, JSONResponse):
        return request

    try:
        story = await asyncio.wait_for(
            services.pipeline.generate_story(request),
            timeout=services.settings.pipeline_timeout_s,
        )
    except asyncio.TimeoutError:
        logger.error("Story generation timed out after %ss", services.settings.pipeline_timeout_s)
        return _error("Story generation timed out", 500)
    except ClayQuestError as exc:
        logger.error("Story generation error: %s", exc)
        return _error(str(exc) or "Failed to generate story", 500)

    return {"story": story.model_dump(by_alias=True, mode="json")}


@app.post("/api/describe")
async def describe(body: ImageBody, services: Services = Depends(get_services)):
    request = _parse_image(body)
    if isinstance(request, JSONResponse):
        return request

    try:
        result = await services.describer.describe_character(request)
    except ClayQuestError as exc:
        logger.error("Image description error: %s", exc)
        return _error(str(exc) or "Failed to analyze image", 500)

    return {
        "description": result.description,
        "character": result.character.model_dump(by_alias=True) if result.character else None,
        "error": result.error,
    }


@app.post("/api/tts")
async def tts(body: NarrationBody, services: Services = Depends(get_services)):
    if not body.text or not body.text.strip():
        return _error("No text provided", 400)
    result = await services.narration.get_audio_url(body.text, body.page_index)
    return result.to_payload()


@app.post("/api/tts/preload")
async def tts_preload(body: PreloadBody, services: Services = Depends(get_services)):
    if not body.texts:
        return _error("No texts provided", 400)
    results = await services.narration.preload(
        body.texts,
        concurrency=services.settings.narration_preload_concurrency,
    )
    return {"results": [r.to_payload() for r in results]}


def _serve(kind: str, request: Request, services: Services):
    # Read the name off the decoded request path: the route pattern also matches
    # before a trailing newline and would hand over the name without it.
    filename = request.scope["path"].partition(f"/temp/{kind}/")[2]
    try:
        path = services.store.resolve(kind, filename)
    except InvalidFilenameError:
        return _error("Invalid filename", 400)
    if path is None:
        return _error("Not found", 404)
    return FileResponse(path, media_type=content_type_for(filename), headers=CACHE_HEADERS)


# `:path` so names containing "/" reach the validator (and get a 400) instead of a routing 404.
@app.get("/temp/images/{filename:path}")
def get_image(request: Request, services: Services = Depends(get_services)):
    return _serve(IMAGES, request, services)


@app.get("/temp/audio/{filename:path}")
def get_audio(request: Request, services: Services = Depends(get_services)):
    return _serve(AUDIO, request, services)
