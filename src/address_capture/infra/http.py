from __future__ import annotations

import logging
from typing import Any

import httpx

from address_capture.core.errors import UpstreamError

log = logging.getLogger(__name__)


class HttpClient:
    def __init__(
        self,
        *,
        timeout_seconds: float,
        user_agent: str,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            timeout=timeout_seconds,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            transport=transport,
        )

    def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            r = self._client.get(url, params=params, headers=headers)
            r.raise_for_status()
            return r.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            log.warning("HTTP %s from %s", status, e.request.url)
            raise UpstreamError(
                f"Upstream HTTP error: {status}", status=status, detail=e.response.text
            ) from e
        except httpx.HTTPError as e:
            log.warning("HTTP error: %s", e)
            raise UpstreamError(f"Upstream HTTP error: {e}", detail=str(e)) from e
        except ValueError as e:
            log.warning("Invalid JSON from %s: %s", url, e)
            raise UpstreamError("Upstream returned invalid JSON", detail=str(e)) from e

    def close(self) -> None:
        try:
            self._client.close()
        except Exception:
            # failures on close are irrelevant at shutdown
            log.debug("Ignoring error while closing http client", exc_info=True)
