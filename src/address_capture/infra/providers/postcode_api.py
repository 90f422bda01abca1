from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from address_capture.core.errors import UpstreamError
from address_capture.core.models import Address
from address_capture.core.text import normalize_query
from address_capture.infra.cache import Cache
from address_capture.infra.http import HttpClient

log = logging.getLogger(__name__)

POSTCODE_API_HOSTNAME = "https://postcodeinfo.service.justice.gov.uk"
LOOKUP_PATH = "/addresses"
VALIDATE_PATH = "/postcodes"


@dataclass(frozen=True)
class PostcodeApiPaths:
    lookup: str = LOOKUP_PATH
    validate: str = VALIDATE_PATH


class PostcodeApiProvider:
    """
    Postcode lookup API.

    - lookup:   GET {hostname}{paths.lookup}?postcode=...  -> [ {formatted_address, ...}, ... ]
    - validate: GET {hostname}{paths.validate}/{postcode}  -> { country: { name }, ... }

    Every request carries the configured Authorization header.
    """

    def __init__(
        self,
        *,
        http: HttpClient,
        hostname: str = POSTCODE_API_HOSTNAME,
        paths: PostcodeApiPaths | None = None,
        authorization: str = "",
        cache: Cache | None = None,
    ) -> None:
        self._http = http
        self._hostname = hostname.rstrip("/")
        self._paths = paths or PostcodeApiPaths()
        self._authorization = authorization
        self._cache = cache

    def _url(self, path: str) -> str:
        return f"{self._hostname}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": self._authorization or ""}

    def lookup(self, postcode: str) -> list[Address]:
        postcode = normalize_query(postcode)
        cache_key = f"postcode:lookup:{postcode.upper()}"

        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                log.debug("Cache hit for postcode: %s", postcode)
                return list(cached) if isinstance(cached, (list, tuple)) else []

        payload = self._http.get_json(
            self._url(self._paths.lookup),
            params={"postcode": postcode},
            headers=self._headers(),
        )
        if not isinstance(payload, list):
            raise UpstreamError("Unexpected lookup payload", detail=type(payload).__name__)

        addresses = [Address.from_payload(item) for item in payload if isinstance(item, dict)]
        addresses = [a for a in addresses if a.formatted_address]

        if addresses and self._cache is not None:
            self._cache.set(cache_key, addresses)
        return addresses

    def postcode_info(self, postcode: str) -> dict[str, Any]:
        postcode = normalize_query(postcode)
        url = self._url(f"{self._paths.validate.rstrip('/')}/{quote(postcode, safe='')}")
        payload = self._http.get_json(url, headers=self._headers())
        return payload if isinstance(payload, dict) else {}

    @staticmethod
    def country_name(payload: dict[str, Any]) -> str | None:
        country = payload.get("country") or {}
        if not isinstance(country, dict):
            return None
        name = country.get("name")
        return name.strip() if isinstance(name, str) and name.strip() else None
