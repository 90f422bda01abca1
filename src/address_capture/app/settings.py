from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv

from address_capture.infra.providers.postcode_api import (
    LOOKUP_PATH,
    POSTCODE_API_HOSTNAME,
    VALIDATE_PATH,
)

load_dotenv()


@dataclass
class Settings:
    # Flow
    address_key: str
    allowed_countries: tuple[str, ...]

    # Postcode API
    postcode_api_hostname: str
    postcode_api_lookup_path: str
    postcode_api_validate_path: str
    postcode_auth: str

    # Cache
    cache_ttl_seconds: int
    cache_maxsize: int
    session_ttl_seconds: int
    session_maxsize: int

    # HTTP
    http_timeout_seconds: float
    http_user_agent: str

    # Logging
    log_level: str


def _clean(s: str | None) -> str:
    return (s or "").strip().strip('"').strip("'")


def _int(name: str, default: int) -> int:
    v = _clean(os.getenv(name, str(default)))
    return int(v)


def _float(name: str, default: float) -> float:
    v = _clean(os.getenv(name, str(default)))
    return float(v)


def _list(name: str) -> tuple[str, ...]:
    return tuple(p.strip() for p in _clean(os.getenv(name)).split(",") if p.strip())


def get_settings() -> Settings:
    """
    Read settings from the environment (and ``.env``).

    POSTCODE_AUTH is optional: the API accepts anonymous requests with a
    lower rate limit. POSTCODE_ALLOWED_COUNTRIES is a comma-separated list;
    when empty no country check is made.
    """
    address_key = _clean(os.getenv("ADDRESS_KEY", "address"))
    if not address_key:
        raise RuntimeError("ADDRESS_KEY must not be empty.")

    return Settings(
        # flow
        address_key=address_key,
        allowed_countries=_list("POSTCODE_ALLOWED_COUNTRIES"),
        # postcode api
        postcode_api_hostname=_clean(os.getenv("POSTCODE_API_HOSTNAME")) or POSTCODE_API_HOSTNAME,
        postcode_api_lookup_path=_clean(os.getenv("POSTCODE_API_LOOKUP_PATH")) or LOOKUP_PATH,
        postcode_api_validate_path=_clean(os.getenv("POSTCODE_API_VALIDATE_PATH")) or VALIDATE_PATH,
        postcode_auth=_clean(os.getenv("POSTCODE_AUTH")),
        # cache
        cache_ttl_seconds=_int("POSTCODE_CACHE_TTL_SECONDS", 60 * 60 * 24),
        cache_maxsize=_int("POSTCODE_CACHE_MAXSIZE", 5000),
        session_ttl_seconds=_int("SESSION_TTL_SECONDS", 60 * 60),
        session_maxsize=_int("SESSION_MAXSIZE", 10000),
        # http
        http_timeout_seconds=_float("HTTP_TIMEOUT_SECONDS", 10.0),
        http_user_agent=_clean(os.getenv("HTTP_USER_AGENT", "address-capture/0.1.0")),
        # logging
        log_level=_clean(os.getenv("LOG_LEVEL", "INFO")).upper() or "INFO",
    )
