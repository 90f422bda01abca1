from __future__ import annotations

import logging
from typing import Iterable, Protocol

from address_capture.core.errors import CountryNotAllowed, UpstreamError
from address_capture.core.models import Address
from address_capture.infra.providers.postcode_api import PostcodeApiProvider

log = logging.getLogger(__name__)

# regions the lookup API has no coverage for
UNSUPPORTED_PREFIXES: tuple[str, ...] = ("BT",)
UNSUPPORTED_REGION = 501


class PostcodeClient(Protocol):
    """What the flow needs from a postcode service; inject any implementation."""

    def lookup(self, postcode: str) -> list[Address]: ...

    def validate(self, postcode: str, allowed_countries: Iterable[str] | None = None) -> None: ...


class PostcodeService:
    def __init__(
        self,
        *,
        provider: PostcodeApiProvider,
        unsupported_prefixes: Iterable[str] = UNSUPPORTED_PREFIXES,
    ) -> None:
        self._provider = provider
        self._unsupported = tuple(p.upper() for p in unsupported_prefixes)

    def is_supported(self, postcode: str) -> bool:
        return not postcode.strip().upper().startswith(self._unsupported)

    def lookup(self, postcode: str) -> list[Address]:
        """
        Return the candidate addresses for *postcode*.

        Raises UpstreamError(status=501) without touching the network when the
        postcode is in an unsupported region, and UpstreamError for any
        transport or HTTP failure.
        """
        if not self.is_supported(postcode):
            raise UpstreamError("Postcode not supported", status=UNSUPPORTED_REGION)
        return self._provider.lookup(postcode)

    def validate(self, postcode: str, allowed_countries: Iterable[str] | None = None) -> None:
        """
        Check the postcode's country against *allowed_countries*.

        Raises CountryNotAllowed when the API reports a country outside the
        list (compared case-insensitively). A missing country passes.
        """
        allowed = [c.strip().lower() for c in (allowed_countries or []) if c and c.strip()]
        if not allowed:
            return

        payload = self._provider.postcode_info(postcode)
        country = self._provider.country_name(payload)
        if country and country.lower() not in allowed:
            raise CountryNotAllowed(postcode, country)
