"""Shared helpers for WeatherFlow endpoint modules.

It is internal to pytempest and may change at any time.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pytempest._transport import Transport
from pytempest.exceptions import TempestApiError


def _raise_for_status(*, endpoint: str, body: Mapping[str, Any]) -> None:
    """Raise when the ``status`` envelope reports a failure.

    Successful responses carry ``{"status_code": 0, "status_message": "SUCCESS"}``.
    A missing envelope is treated as success.
    """
    status = body.get("status")
    if not isinstance(status, Mapping):
        return
    code = str(status.get("status_code", "0"))
    if code == "0":
        return
    message = str(status.get("status_message", ""))
    raise TempestApiError(
        f"{endpoint} failed: code={code} message={message}",
        code=code,
        endpoint=endpoint,
    )


async def get_checked_json(*, endpoint: str, transport: Transport) -> dict[str, Any]:
    """GET *endpoint* and validate the status envelope."""
    body = await transport.get_json(endpoint)
    _raise_for_status(endpoint=endpoint, body=body)
    return body
