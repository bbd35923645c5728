from __future__ import annotations


class ClayQuestError(Exception):
    """Base class for every failure the service knows how to report."""


class ConfigurationError(ClayQuestError):
    """A credential or setting needed for a call is missing."""


class ExtractionError(ClayQuestError):
    def __init__(self, message: str, raw_text: str | None) -> None:
        super().__init__(message)
        # Kept so callers can show the model output instead of crashing.
        self.raw_text = raw_text


class ModelUnavailableError(ClayQuestError):
    """The vision backend does not know (or does not serve) the requested model."""

    def __init__(self, model: str, message: str = "") -> None:
        super().__init__(message or f"model {model!r} is not available")
        self.model = model


class DescribeError(ClayQuestError):
    pass


class OutlineError(ClayQuestError):
    pass


class PipelineError(ClayQuestError):
    pass


class ProviderError(ClayQuestError):
    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    pass


class SpeechSynthesisError(ClayQuestError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidFilenameError(ClayQuestError):
    pass
