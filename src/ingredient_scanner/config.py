"""Application configuration."""

import os
from dataclasses import dataclass, field
from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict

from ingredient_scanner.domain.usage import CallKind

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    telegram_bot_token: str
    supabase_url: str
    supabase_service_key: str
    admin_token: str
    telegram_allowed_user_ids: str | None = None
    openai_api_key: str
    openai_fast_model: str = "gpt-5-mini"
    openai_deep_model: str = "gpt-5.2"
    openai_reasoning_effort: str | None = "low"
    openai_store: bool = False
    # USD per million tokens; search rate is USD per web search call.
    fast_input_rate: Decimal = Decimal("0.25")
    fast_output_rate: Decimal = Decimal("2.00")
    deep_input_rate: Decimal = Decimal("1.75")
    deep_output_rate: Decimal = Decimal("14.00")
    search_rate: Decimal = Decimal("0.01")
    fuzzy_accept_threshold: float = 0.1
    inference_retry_count: int = 1
    max_output_tokens_extraction: int = 1024
    max_output_tokens_analysis: int = 8192
    max_output_tokens_compatibility: int = 2048
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


@dataclass(frozen=True)
class CallPricing:
    """Per-unit prices for one kind of inference call."""

    input_rate: Decimal
    output_rate: Decimal
    search_rate: Decimal = Decimal(0)


@dataclass(frozen=True)
class PipelineConfig:
    """Explicit knobs injected into the gateway, store and pipeline."""

    pricing: dict[CallKind, CallPricing]
    fuzzy_accept_threshold: float = 0.1
    retry_count: int = 1
    max_output_tokens: dict[CallKind, int] = field(
        default_factory=lambda: {
            CallKind.EXTRACTION: 1024,
            CallKind.DEEP_ANALYSIS: 8192,
            CallKind.COMPATIBILITY: 2048,
            CallKind.PROFILE: 1024,
        }
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        """Build the pipeline configuration from application settings."""
        fast = CallPricing(
            input_rate=settings.fast_input_rate,
            output_rate=settings.fast_output_rate,
        )
        deep = CallPricing(
            input_rate=settings.deep_input_rate,
            output_rate=settings.deep_output_rate,
            search_rate=settings.search_rate,
        )
        return cls(
            pricing={
                CallKind.EXTRACTION: fast,
                CallKind.DEEP_ANALYSIS: deep,
                CallKind.COMPATIBILITY: fast,
                CallKind.PROFILE: fast,
            },
            fuzzy_accept_threshold=settings.fuzzy_accept_threshold,
            retry_count=settings.inference_retry_count,
            max_output_tokens={
                CallKind.EXTRACTION: settings.max_output_tokens_extraction,
                CallKind.DEEP_ANALYSIS: settings.max_output_tokens_analysis,
                CallKind.COMPATIBILITY: settings.max_output_tokens_compatibility,
                CallKind.PROFILE: settings.max_output_tokens_extraction,
            },
        )


def parse_allowed_user_ids(raw: str | None) -> set[int] | None:
    """Parse allowed Telegram user IDs from env."""
    if raw is None:
        return None
    cleaned = raw.strip()
    if cleaned in {"", "*"}:
        return None
    ids: set[int] = set()
    for chunk in cleaned.split(","):
        value = chunk.strip()
        if not value:
            continue
        if value.isdigit():
            ids.add(int(value))
    return ids or None
