"""Configuration settings loaded from the environment."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

STORAGE_BACKENDS = ("json", "sqlite", "memory")


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Transport
    telegram_bot_token: Optional[SecretStr] = None
    allowed_senders: list[str] = Field(default_factory=list)  # empty = everyone

    # Burst aggregation and reply timing (seconds)
    debounce_delay: float = 2.0
    burst_separator: str = " | "
    min_reply_delay: float = 1.0
    max_reply_delay: float = 6.0
    reply_delay_per_char: float = 0.05
    reply_jitter: float = 1.0
    skip_response_threshold: int = 3
    processed_ids_limit: int = 500

    # Memory caps
    max_short_term_messages: int = 10
    max_long_term_summaries: int = 5
    max_emotional_events: int = 20
    max_semantic_memories: int = 10
    max_mood_history: int = 20
    max_response_quality: int = 10
    memory_compression_threshold: int = 15
    memory_save_debounce: float = 5.0

    # Decay and recall
    tone_decay_hours: float = 48.0
    mood_window_hours: float = 24.0
    embedding_similarity_threshold: float = 0.65
    semantic_recall_limit: int = 3
    embedding_cache_size: int = 1000
    relationship_stale_days: float = 7.0
    personality_adaptation_rate: float = 0.1
    timezone: str = "Asia/Jakarta"

    # Inference endpoint (OpenAI-compatible, e.g. Ollama)
    ai_base_url: str = "http://localhost:11434/v1"
    ai_api_key: SecretStr = SecretStr("ollama")
    model_factual: str = "gemma3:4b-it-qat"
    model_emotional: str = "gemma3:4b-it-qat"
    model_creative: str = "gemma3:4b-it-qat"
    model_coding: str = "gemma3:4b-it-qat"
    model_summarization: str = "gemma3:1b-it-qat"
    model_embedding: str = "tazarov/all-minilm-l6-v2-f32:latest"
    fallback_models: list[str] = Field(
        default_factory=lambda: [
            "phi3:3.8b",
            "gemma3:4b-it-qat",
            "llama3.2:latest",
        ]
    )
    ai_max_tokens: int = 150
    ai_temperature: float = 0.85
    ai_max_retries: int = 3
    ai_retry_delay: float = 2.0
    ai_timeout: float = 25.0

    # Storage
    storage_backend: str = "json"
    memory_file: str = "memory/memory.json"
    database_path: str = "memory/companion.db"

    # Misc
    reflection_enabled: bool = True
    debug: bool = False
    log_json: bool = False

    @field_validator(
        "max_short_term_messages",
        "max_long_term_summaries",
        "max_emotional_events",
        "max_semantic_memories",
        "max_mood_history",
        "max_response_quality",
        "memory_compression_threshold",
        "semantic_recall_limit",
        "embedding_cache_size",
        "processed_ids_limit",
        "skip_response_threshold",
        "ai_max_retries",
    )
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator(
        "debounce_delay",
        "min_reply_delay",
        "max_reply_delay",
        "reply_delay_per_char",
        "reply_jitter",
        "memory_save_debounce",
        "ai_retry_delay",
    )
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator("personality_adaptation_rate", "embedding_similarity_threshold")
    @classmethod
    def _unit_interval(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("must be within [0, 1]")
        return value

    @field_validator("storage_backend")
    @classmethod
    def _known_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in STORAGE_BACKENDS:
            raise ValueError(
                f"unsupported storage backend '{value}', "
                f"expected one of {', '.join(STORAGE_BACKENDS)}"
            )
        return value

    @model_validator(mode="after")
    def _reply_delay_bounds(self) -> "Settings":
        if self.max_reply_delay < self.min_reply_delay:
            raise ValueError("max_reply_delay must be >= min_reply_delay")
        return self

    @property
    def ai_api_key_str(self) -> str:
        return self.ai_api_key.get_secret_value()

    @property
    def telegram_bot_token_str(self) -> Optional[str]:
        if self.telegram_bot_token is None:
            return None
        return self.telegram_bot_token.get_secret_value()

    @property
    def role_models(self) -> dict[str, str]:
        """Model id for each routing role, in routing order."""
        return {
            "factual": self.model_factual,
            "emotional": self.model_emotional,
            "creative": self.model_creative,
            "coding": self.model_coding,
            "summarization": self.model_summarization,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
