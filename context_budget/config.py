# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Engine configuration using pydantic-settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------------------------------------------------------------------------
# Budget constants
# ---------------------------------------------------------------------------

# Share of the context window kept free when deciding to condense/truncate.
TOKEN_BUFFER_PERCENTAGE = 0.1

# Bounds for percent-based condense thresholds.
MIN_CONDENSE_THRESHOLD = 5
MAX_CONDENSE_THRESHOLD = 100

# Profile threshold value meaning "inherit the global percent".
PROFILE_THRESHOLD_INHERIT = -1


class Settings(BaseSettings):
    """Engine settings.

    Attributes:
        DEFAULT_MAX_TOKENS (int): Output tokens reserved when the model does
            not declare ``max_tokens``.
        AUTO_CONDENSE_CONTEXT (bool): Whether automatic condensation is on.
        AUTO_CONDENSE_CONTEXT_PERCENT (int): Global condense threshold as a
            percentage of the context window.
        TOKEN_CACHE_TTL_SECONDS (float): Lifetime of a cached token count.
        TOKEN_CACHE_MAX_ENTRIES (int): Token cache capacity before LRU eviction.
        COMPRESSION_CACHE_MAX_ENTRIES (int): Compressor cache capacity.
        TOKENIZER_MODEL (str): Model name used to pick the tiktoken encoding.
        CONDENSE_KEEP_MESSAGES (int): Trailing messages kept verbatim when
            condensing.
        TRUNCATION_FRACTION (float): Share of visible messages hidden by the
            sliding-window fallback.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    DEFAULT_MAX_TOKENS: int = 8192
    AUTO_CONDENSE_CONTEXT: bool = True
    AUTO_CONDENSE_CONTEXT_PERCENT: int = 100

    # Caches
    TOKEN_CACHE_TTL_SECONDS: float = 3600.0
    TOKEN_CACHE_MAX_ENTRIES: int = 10_000
    COMPRESSION_CACHE_MAX_ENTRIES: int = 1_000
    TOKENIZER_MODEL: str = "gpt-4o"

    # Condensation / truncation
    CONDENSE_KEEP_MESSAGES: int = 3
    TRUNCATION_FRACTION: float = 0.5


settings = Settings()
