"""Exception hierarchy for the companion engine."""


class CompanionError(Exception):
    """Base error for everything raised by the engine."""


class ConfigurationError(CompanionError):
    """Invalid or inconsistent configuration."""


class StorageError(CompanionError):
    """Persistence backend failure."""


class CorruptedStoreError(StorageError):
    """Persisted data could not be parsed.

    Carries the path the corrupted file was moved to, if quarantine succeeded.
    """

    def __init__(self, message: str, backup_path: str | None = None) -> None:
        self.backup_path = backup_path
        super().__init__(message)


class GenerationError(CompanionError):
    """A single generation attempt failed."""


class AllModelsFailedError(GenerationError):
    """Every model in the fallback chain failed."""

    def __init__(self, models: list[str], last_error: Exception | None = None) -> None:
        self.models = models
        self.last_error = last_error
        detail = str(last_error) if last_error else "unknown error"
        super().__init__(
            f"All models failed ({', '.join(models)}). Last error: {detail}"
        )


class EmbeddingError(CompanionError):
    """Embedding endpoint failed or returned an unusable vector."""
