"""Environment-driven configuration for detection and matching."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from .matching.constants import MAX_FIELDS_PER_PAGE, MAX_RECORDS_FOR_MATCHING


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass
class Settings:
    """Container for environment-driven settings, read when an instance is built."""

    provider: Optional[str] = field(default_factory=lambda: _env_optional("FORMWISE_PROVIDER"))
    model: Optional[str] = field(default_factory=lambda: _env_optional("FORMWISE_MODEL"))
    api_key: Optional[str] = field(default_factory=lambda: _env_optional("FORMWISE_API_KEY"))
    ai_enabled: bool = field(default_factory=lambda: _env_flag("FORMWISE_AI_ENABLED", default=True))
    ai_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("FORMWISE_AI_TIMEOUT", "30.0")))
    ai_temperature: float = field(default_factory=lambda: float(os.getenv("FORMWISE_AI_TEMPERATURE", "0.3")))
    confidence_threshold: float = field(
        default_factory=lambda: float(os.getenv("FORMWISE_CONFIDENCE_THRESHOLD", "0.6"))
    )
    max_fields: int = field(default_factory=lambda: int(os.getenv("FORMWISE_MAX_FIELDS", str(MAX_FIELDS_PER_PAGE))))
    max_records: int = field(
        default_factory=lambda: int(os.getenv("FORMWISE_MAX_RECORDS", str(MAX_RECORDS_FOR_MATCHING)))
    )
    log_level: str = field(default_factory=lambda: os.getenv("FORMWISE_LOG_LEVEL", "INFO"))

    def resolved_api_key(self, api_key_env: Optional[str] = None) -> Optional[str]:
        """Return the explicit key, else the provider's conventional variable."""

        if self.api_key:
            return self.api_key
        if api_key_env:
            return _env_optional(api_key_env)
        return None

    @property
    def ai_configured(self) -> bool:
        return bool(self.ai_enabled and self.provider)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
