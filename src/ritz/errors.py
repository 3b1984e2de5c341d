"""Error taxonomy for the pipeline."""

from typing import Optional


class RitzError(Exception):
    """Base class for every pipeline error."""


class ProviderError(RitzError):
    """A generation provider could not deliver."""

    def __init__(self, message: str, provider: Optional[str] = None) -> None:
        self.provider = provider
        prefix = f"{provider}: " if provider else ""
        super().__init__(f"{prefix}{message}")


class ProviderSubmitError(ProviderError):
    """A submission call was rejected or failed."""


class ProviderTimeoutError(ProviderError):
    """Polling exceeded the maximum attempt count."""


class ProviderFailedError(ProviderError):
    """The provider reported a terminal failure status."""


class TranscodeError(RitzError):
    """The media transcoder failed or ran out of time."""

    def __init__(self, message: str, diagnostics: str = "") -> None:
        self.diagnostics = diagnostics
        detail = f": {diagnostics}" if diagnostics else ""
        super().__init__(f"{message}{detail}")


class PersistenceError(RitzError):
    """An asset store read or write failed."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        self.key = key
        super().__init__(message)


class PipelineError(RitzError):
    """Project-level failure, such as a run where every shot failed."""


class PipelineCancelled(RitzError):
    """The abort signal stopped a run."""
