from __future__ import annotations

from dataclasses import dataclass

import httpx

from address_capture.app.settings import Settings, get_settings
from address_capture.flow.address_flow import AddressCaptureFlow, FlowConfig
from address_capture.infra.cache import Cache
from address_capture.infra.http import HttpClient
from address_capture.infra.providers.postcode_api import PostcodeApiPaths, PostcodeApiProvider
from address_capture.services.postcode_service import PostcodeClient, PostcodeService


@dataclass(frozen=True)
class Container:
    settings: Settings
    cache: Cache
    sessions: Cache
    http: HttpClient
    provider: PostcodeApiProvider
    postcode_service: PostcodeService
    flow: AddressCaptureFlow


def build_container(
    settings: Settings | None = None,
    *,
    service: PostcodeClient | None = None,
    transport: httpx.BaseTransport | None = None,
) -> Container:
    """
    Wire everything from settings.

    ``service`` replaces the postcode client the flow talks to;
    ``transport`` replaces httpx's network transport (tests).
    """
    settings = settings or get_settings()

    cache = Cache(maxsize=settings.cache_maxsize, ttl_seconds=settings.cache_ttl_seconds)
    sessions = Cache(maxsize=settings.session_maxsize, ttl_seconds=settings.session_ttl_seconds)
    http = HttpClient(
        timeout_seconds=settings.http_timeout_seconds,
        user_agent=settings.http_user_agent,
        transport=transport,
    )

    provider = PostcodeApiProvider(
        http=http,
        hostname=settings.postcode_api_hostname,
        paths=PostcodeApiPaths(
            lookup=settings.postcode_api_lookup_path,
            validate=settings.postcode_api_validate_path,
        ),
        authorization=settings.postcode_auth,
        cache=cache,
    )
    postcode_service = PostcodeService(provider=provider)

    flow = AddressCaptureFlow(
        FlowConfig(
            address_key=settings.address_key,
            allowed_countries=settings.allowed_countries,
        ),
        service=service or postcode_service,
    )

    return Container(
        settings=settings,
        cache=cache,
        sessions=sessions,
        http=http,
        provider=provider,
        postcode_service=postcode_service,
        flow=flow,
    )
