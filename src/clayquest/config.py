from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

from clayquest.providers.base import AspectRatio


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file for local runs.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    data_dir: str = "."
    log_level: str = "INFO"

    # Keys
    gemini_api_key: str | None = None
    openai_api_key: str | None = None
    freepik_api_key: str | None = None
    elevenlabs_api_key: str | None = None

    # Vision: tried in order until one of them exists for this key.
    vision_model_candidates: list[str] = [
        "gemini-2.5-flash",
        "gemini-2.0-flash",
        "gemini-1.5-flash",
    ]
    vision_max_output_tokens: int = 2000
    model_call_timeout_s: float = 30.0

    # Image generation
    image_provider: str = "freepik"
    image_provider_fallback: str | None = None
    image_aspect_ratio: AspectRatio = "4:3"
    gemini_image_model: str = "imagen-4.0-generate-001"
    openai_image_model: str = "gpt-image-1"
    freepik_poll_interval_s: float = 2.0
    freepik_max_poll_attempts: int = 60
    placeholder_sizes: dict[str, tuple[int, int]] = {
        "4:3": (800, 600),
        "16:9": (960, 540),
        "1:1": (600, 600),
        "3:4": (600, 800),
    }

    # Narration
    elevenlabs_voice_id: str = "JBFqnCBsd6RMkjVDRZzb"
    elevenlabs_model_id: str = "eleven_multilingual_v2"
    narration_preload_concurrency: int = 2

    # Pipeline
    outline_attempts: int = 2
    pipeline_timeout_s: float = 300.0


def has_credential(value: str | None) -> bool:
    """True for a real key; empty values and `.env.example` templates don't count."""
    if not value:
        return False
    v = value.strip()
    return bool(v) and not (v.startswith("your_") and v.endswith("_here"))


settings = Settings()
