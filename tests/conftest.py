from __future__ import annotations

from typing import Iterable
from urllib.parse import unquote

import httpx
import pytest

from address_capture.app.settings import Settings
from address_capture.core.errors import CountryNotAllowed, UpstreamError
from address_capture.core.models import Address
from address_capture.flow.address_flow import AddressCaptureFlow, FlowConfig, WizardRequest
from address_capture.flow.session import InMemorySession

CROYDON = [
    {"formatted_address": "Flat 1\n10 High Street\nCroydon\nCR0 2EU", "uprn": "1"},
    {"formatted_address": "Flat 2\n10 High Street\nCroydon\nCR0 2EU", "uprn": "2"},
]

COUNTRIES = {
    "CR0 2EU": "England",
    "BN25 1XY": "England",
    "CH5 1AB": "Wales",
}


class FakePostcodeService:
    """Stands in for PostcodeService; records every call."""

    def __init__(self, addresses: dict[str, list[dict]] | None = None) -> None:
        self.addresses = addresses if addresses is not None else {"CR0 2EU": CROYDON}
        self.lookup_calls: list[str] = []
        self.validate_calls: list[str] = []
        self.lookup_error: Exception | None = None
        self.validate_error: Exception | None = None
        self.countries = dict(COUNTRIES)

    def lookup(self, postcode: str) -> list[Address]:
        self.lookup_calls.append(postcode)
        if postcode.upper().startswith("BT"):
            raise UpstreamError("Postcode not supported", status=501)
        if self.lookup_error is not None:
            raise self.lookup_error
        return [Address.from_payload(a) for a in self.addresses.get(postcode, [])]

    def validate(self, postcode: str, allowed_countries: Iterable[str] | None = None) -> None:
        self.validate_calls.append(postcode)
        if self.validate_error is not None:
            raise self.validate_error
        country = self.countries.get(postcode)
        allowed = [c.lower() for c in allowed_countries or []]
        if country and allowed and country.lower() not in allowed:
            raise CountryNotAllowed(postcode, country)


@pytest.fixture()
def service() -> FakePostcodeService:
    return FakePostcodeService()


@pytest.fixture()
def flow(service: FakePostcodeService) -> AddressCaptureFlow:
    return AddressCaptureFlow(FlowConfig(address_key="home"), service=service)


@pytest.fixture()
def session() -> InMemorySession:
    return InMemorySession()


@pytest.fixture()
def make_request(session: InMemorySession):
    def _make(step: str | None = None, **values: str) -> WizardRequest:
        query = {"step": step} if step else {}
        return WizardRequest(session=session, query=query, values=dict(values))

    return _make


class PostcodeApi:
    """httpx.MockTransport handler imitating the postcode API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.addresses: dict[str, list[dict]] = {"CR0 2EU": CROYDON}
        self.countries = dict(COUNTRIES)
        self.status: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status is not None:
            return httpx.Response(self.status, json={"detail": "error"})
        if request.url.path == "/addresses":
            postcode = request.url.params.get("postcode", "")
            return httpx.Response(200, json=self.addresses.get(postcode, []))
        if request.url.path.startswith("/postcodes/"):
            postcode = unquote(request.url.path.rsplit("/", 1)[-1])
            if postcode not in self.countries:
                return httpx.Response(404, json={"detail": "Not found"})
            return httpx.Response(200, json={"country": {"name": self.countries[postcode]}})
        return httpx.Response(404)


@pytest.fixture()
def api() -> PostcodeApi:
    return PostcodeApi()


@pytest.fixture()
def transport(api: PostcodeApi) -> httpx.MockTransport:
    return httpx.MockTransport(api)


def make_settings(**overrides) -> Settings:
    values = dict(
        address_key="address-one",
        allowed_countries=(),
        postcode_api_hostname="https://postcodes.test",
        postcode_api_lookup_path="/addresses",
        postcode_api_validate_path="/postcodes",
        postcode_auth="Token abc",
        cache_ttl_seconds=60,
        cache_maxsize=100,
        session_ttl_seconds=60,
        session_maxsize=100,
        http_timeout_seconds=2.0,
        http_user_agent="address-capture-tests",
        log_level="DEBUG",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture(name="make_settings")
def make_settings_fixture():
    return make_settings
