from typing import Optional


class AudioTourError(Exception):
    """Base class for every error raised inside the tour pipeline."""


class ConfigurationError(AudioTourError):
    """A provider credential or setting is missing."""

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        super().__init__(f"{provider}: {detail}")


class ProviderUnavailable(ConfigurationError):
    """The generative text service has no credential configured."""


class ProviderError(AudioTourError):
    """An external provider answered with a non-success status or a malformed payload."""

    def __init__(self, provider: str, detail: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {detail}")


class ProviderTimeout(ProviderError):
    """An external provider did not answer within its time budget."""

    def __init__(self, provider: str, timeout: float):
        self.timeout = timeout
        super().__init__(provider, f"timed out after {timeout:.1f}s")


class InvalidSubjectError(AudioTourError):
    """Coordinates or a landmark payload failed validation at the pipeline boundary."""


class GenerationError(AudioTourError):
    """The generative narration tier failed; the template tier takes over."""

    def __init__(self, reason: str, cause: Optional[Exception] = None):
        self.reason = reason
        self.cause = cause
        super().__init__(reason)
