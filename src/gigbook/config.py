"""Configuration via environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

DEFAULT_EXCHANGE_RATE_API_URL = "https://api.frankfurter.app"


@dataclass(frozen=True)
class ServiceConfig:
    """Connection settings for the hosted backend API."""

    base_url: str
    token: str | None = None
    timeout: float = 30.0


def get_database_url() -> str:
    """Return the DATABASE_URL from the environment."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        msg = "DATABASE_URL environment variable is required"
        raise ValueError(msg)
    return url


def get_user_id() -> str:
    """Return the tenant id every stored row is scoped to."""
    user_id = os.environ.get("GIGBOOK_USER_ID")
    if not user_id:
        msg = "GIGBOOK_USER_ID environment variable is required"
        raise ValueError(msg)
    return user_id


def get_http_timeout() -> float:
    """Return HTTP_TIMEOUT in seconds, defaulting to 30."""
    return float(os.environ.get("HTTP_TIMEOUT", "30"))


def get_service_config() -> ServiceConfig:
    """Build backend API configuration from environment variables.

    Required: GIGBOOK_API_URL
    Optional: GIGBOOK_API_TOKEN, HTTP_TIMEOUT (default 30)
    """
    base_url = os.environ.get("GIGBOOK_API_URL")
    if not base_url:
        msg = "GIGBOOK_API_URL environment variable is required"
        raise ValueError(msg)

    return ServiceConfig(
        base_url=base_url.rstrip("/"),
        token=os.environ.get("GIGBOOK_API_TOKEN") or None,
        timeout=get_http_timeout(),
    )


def get_base_currency() -> str:
    """Return the company's base currency, defaulting to SEK."""
    return os.environ.get("GIGBOOK_BASE_CURRENCY", "SEK").upper()


def get_company_country() -> str:
    """Return the company's ISO country code, defaulting to SE."""
    return os.environ.get("GIGBOOK_COUNTRY", "SE").upper()


def get_exchange_rate_api_url() -> str:
    """Return the exchange-rate API root, defaulting to Frankfurter (ECB data)."""
    return os.environ.get(
        "EXCHANGE_RATE_API_URL", DEFAULT_EXCHANGE_RATE_API_URL
    ).rstrip("/")


def get_anthropic_api_key() -> str:
    """Return the ANTHROPIC_API_KEY from the environment."""
    key = os.environ.get("ANTHROPIC_API_KEY")
    if not key:
        msg = "ANTHROPIC_API_KEY environment variable is required"
        raise ValueError(msg)
    return key


def get_llm_model() -> str:
    """Return the LLM model identifier.

    Defaults to claude-haiku-4-5-20251001.
    """
    return os.environ.get("LLM_MODEL", "claude-haiku-4-5-20251001")
