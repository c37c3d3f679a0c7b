"""
Centralized configuration with environment variable overrides.

Brand text, claim endpoint credentials, retry policy, scheduling delays
and model settings all live here. Agents and tools read from ``settings``
instead of hardcoding values.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    raw = os.getenv(env_var, default).strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class ConciergeConfig:
    """Brand and persona settings used in prompts and notices."""

    brand_name: str = os.getenv("BRAND_NAME", "Suraksha Health Insurance")
    assistant_name: str = os.getenv("ASSISTANT_NAME", "Claim Concierge")
    support_line: str = os.getenv("SUPPORT_LINE", "1800-266-7780")


@dataclass(frozen=True)
class ModelConfig:
    """Text generation model settings."""

    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.3")
    humanize_temperature: float = _safe_float("HUMANIZE_TEMPERATURE", "0.8")
    classify_temperature: float = _safe_float("CLASSIFY_TEMPERATURE", "0.1")
    max_tokens: int = _safe_int("LLM_MAX_TOKENS", "300")


@dataclass(frozen=True)
class ClaimConfig:
    """Claim intimation endpoint and its retry policy."""

    endpoint: str = os.getenv(
        "CLAIM_API_URL",
        "https://claims.example.com/api/health/claims/initiate-claim",
    )
    auth_token: str = os.getenv("CLAIM_API_TOKEN", "")
    timeout_sec: float = _safe_float("CLAIM_API_TIMEOUT", "30.0")
    max_attempts: int = _safe_int("CLAIM_MAX_ATTEMPTS", "3")
    retry_delay_sec: float = _safe_float("CLAIM_RETRY_DELAY", "10.0")


@dataclass(frozen=True)
class MessagingConfig:
    """Outbound messaging gateway settings."""

    gateway_url: str = os.getenv(
        "MESSAGING_GATEWAY_URL", "http://localhost:9000/api/bot/outgoing-messages"
    )
    api_key: str = os.getenv("MESSAGING_API_KEY", "")
    timeout_sec: float = _safe_float("MESSAGING_TIMEOUT", "10.0")


@dataclass(frozen=True)
class SchedulingConfig:
    """Follow-up scheduling defaults."""

    default_delay_sec: float = _safe_float("FOLLOWUP_DELAY", "10.0")
    history_window: int = _safe_int("HUMANIZE_HISTORY_WINDOW", "5")
    humanize_enabled: bool = _safe_bool("HUMANIZE_ENABLED", "true")


@dataclass(frozen=True)
class SearchConfig:
    """Hospital search settings."""

    top_n: int = _safe_int("HOSPITAL_SEARCH_TOP_N", "5")
    fallback_department: str = os.getenv("FALLBACK_DEPARTMENT", "General Medicine")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    concierge: ConciergeConfig = field(default_factory=ConciergeConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    claims: ClaimConfig = field(default_factory=ClaimConfig)
    messaging: MessagingConfig = field(default_factory=MessagingConfig)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "claim-concierge")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    for temp_name, temp_value in [
        ("LLM_TEMPERATURE", config.model.llm_temperature),
        ("HUMANIZE_TEMPERATURE", config.model.humanize_temperature),
        ("CLASSIFY_TEMPERATURE", config.model.classify_temperature),
    ]:
        if not 0.0 <= temp_value <= 2.0:
            raise ValueError(f"{temp_name} must be between 0.0 and 2.0, got {temp_value}")

    if config.model.max_tokens < 1:
        raise ValueError(f"LLM_MAX_TOKENS must be >= 1, got {config.model.max_tokens}")
    if config.claims.max_attempts < 1:
        raise ValueError(
            f"CLAIM_MAX_ATTEMPTS must be >= 1, got {config.claims.max_attempts}"
        )
    if config.claims.retry_delay_sec < 0:
        raise ValueError(
            f"CLAIM_RETRY_DELAY must be >= 0, got {config.claims.retry_delay_sec}"
        )
    if config.claims.timeout_sec <= 0:
        raise ValueError(
            f"CLAIM_API_TIMEOUT must be > 0, got {config.claims.timeout_sec}"
        )
    if config.messaging.timeout_sec <= 0:
        raise ValueError(
            f"MESSAGING_TIMEOUT must be > 0, got {config.messaging.timeout_sec}"
        )
    if config.scheduling.default_delay_sec < 0:
        raise ValueError(
            f"FOLLOWUP_DELAY must be >= 0, got {config.scheduling.default_delay_sec}"
        )
    if config.scheduling.history_window < 0:
        raise ValueError(
            "HUMANIZE_HISTORY_WINDOW must be >= 0, "
            f"got {config.scheduling.history_window}"
        )
    if config.search.top_n < 1:
        raise ValueError(f"HOSPITAL_SEARCH_TOP_N must be >= 1, got {config.search.top_n}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.concierge.brand_name)
    return config


# Singleton instance
settings = load_config()
