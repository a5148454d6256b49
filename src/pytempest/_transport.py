"""HTTP transport for the WeatherFlow REST API."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pytempest._constants import USER_AGENT
from pytempest._redact import redact_for_log, redact_url
from pytempest.config import TempestConfig
from pytempest.exceptions import TempestRateLimitError, TempestTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`RestTransport`) concrete.
    """

    async def get_json(self, endpoint: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        ...


class RestTransport:
    """Token-authenticated JSON GET transport."""

    def __init__(
        self,
        config: TempestConfig,
        http_session: aiohttp.ClientSession,
    ) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def get_json(self, endpoint: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """GET ``{rest_base_url}{endpoint}`` with the token and return the JSON object.

        Raises
        ------
        TempestRateLimitError
            On HTTP 429.
        TempestTransportError
            On network failure, any other non-200 status, or a body that is
            not a JSON object.
        """
        url = f"{self._config.rest_base_url}{endpoint}"
        query: dict[str, Any] = dict(params or {})
        query["token"] = self._config.token

        headers = {"accept": "application/json", "user-agent": USER_AGENT}

        _logger.debug("GET %s", redact_url(url))

        try:
            async with self._http.get(url, params=query, headers=headers, timeout=self._timeout) as resp:
                text = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TempestTransportError(
                f"Request to {endpoint} failed: {exc or type(exc).__name__}",
                endpoint=endpoint,
            ) from exc

        if status == 429:
            raise TempestRateLimitError(
                f"Rate limited by {endpoint} (HTTP 429)",
                status_code=status,
                endpoint=endpoint,
            )
        if status != 200:
            raise TempestTransportError(
                f"HTTP {status} from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            )

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise TempestTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            ) from exc

        if not isinstance(body, dict):
            raise TempestTransportError(
                f"Expected a JSON object from {endpoint}, got {type(body).__name__}",
                status_code=status,
                endpoint=endpoint,
            )

        if self._config.api_trace_enabled:
            _logger.debug("Response %s: %s", endpoint, redact_for_log(body))
        return body
