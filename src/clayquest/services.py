from __future__ import annotations

from dataclasses import dataclass

from clayquest.config import Settings
from clayquest.images import ImageProviderRegistry
from clayquest.narration import NarrationCache
from clayquest.outline import StoryOutliner
from clayquest.pipeline import PipelineOrchestrator
from clayquest.providers.base import ImageProvider
from clayquest.providers.elevenlabs_provider import ElevenLabsSynthesizer
from clayquest.providers.freepik_provider import FreepikProvider
from clayquest.providers.gemini_provider import GeminiImageProvider, GeminiVisionClient
from clayquest.providers.openai_provider import OpenAIImageProvider
from clayquest.providers.placeholder_provider import PlaceholderProvider
from clayquest.storage import AssetStore
from clayquest.vision import VisionDescriber


@dataclass
class Services:
    settings: Settings
    store: AssetStore
    describer: VisionDescriber
    images: ImageProviderRegistry
    pipeline: PipelineOrchestrator
    narration: NarrationCache


def build_services(settings: Settings) -> Services:
    """Wire every component from one explicit Settings value."""
    store = AssetStore(settings.data_dir)

    vision_client = GeminiVisionClient(
        api_key=settings.gemini_api_key,
        max_output_tokens=settings.vision_max_output_tokens,
    )
    describer = VisionDescriber(
        vision_client,
        model_candidates=settings.vision_model_candidates,
        call_timeout_s=settings.model_call_timeout_s,
    )

    providers: dict[str, ImageProvider] = {
        "freepik": FreepikProvider(
            api_key=settings.freepik_api_key,
            poll_interval_s=settings.freepik_poll_interval_s,
            max_poll_attempts=settings.freepik_max_poll_attempts,
        ),
        "gemini": GeminiImageProvider(api_key=settings.gemini_api_key, model=settings.gemini_image_model),
        "openai": OpenAIImageProvider(api_key=settings.openai_api_key, model=settings.openai_image_model),
        "placeholder": PlaceholderProvider(sizes=settings.placeholder_sizes),
    }
    images = ImageProviderRegistry(
        providers,
        store=store,
        primary=settings.image_provider,
        fallback=settings.image_provider_fallback or None,
    )

    pipeline = PipelineOrchestrator(
        StoryOutliner(describer, attempts=settings.outline_attempts),
        images,
        aspect_ratio=settings.image_aspect_ratio,
    )

    synthesizer = ElevenLabsSynthesizer(
        api_key=settings.elevenlabs_api_key,
        voice_id=settings.elevenlabs_voice_id,
        model_id=settings.elevenlabs_model_id,
    )
    narration = NarrationCache(store, synthesizer)

    return Services(
        settings=settings,
        store=store,
        describer=describer,
        images=images,
        pipeline=pipeline,
        narration=narration,
    )
