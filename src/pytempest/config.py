"""Client configuration for pytempest."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pytempest._constants import REST_BASE_URL, WS_URL
from pytempest.exceptions import TempestConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class TempestConfig:
    """Client configuration.

    Parameters
    ----------
    token : str
        WeatherFlow personal access token. Sent as the ``token`` query
        parameter on every REST and WebSocket request.
    station_id : str
        Station identifier as shown in the Tempest app.
    rest_base_url : str
        REST API base URL.
    ws_url : str
        WebSocket endpoint URL (without query string).
    request_timeout : float
        Total timeout in seconds for a single REST request or WebSocket
        handshake.
    heartbeat : float
        WebSocket ping interval in seconds. A missed pong closes the
        connection, which feeds the normal reconnect path.
    initial_reconnect_delay : float
        Base reconnect delay in seconds.
    reconnect_growth : float
        Multiplier applied per consecutive failure. Must be > 1.
    max_reconnect_delay : float
        Upper bound for the pre-jitter reconnect delay.
    rate_limit_min_delay : float
        Floor applied to the delay after a rate-limited attempt.
    reconnect_jitter : float
        Jitter ratio; a uniform ``[0, ratio * delay]`` is added.
    max_retries : int
        Consecutive failures after which automatic reconnection stops.
    staleness_window : float
        Maximum age in seconds of the last push observation before the
        poll fallback kicks in.
    fallback_interval : float
        Period in seconds of the freshness check.
    initial_check_delay : float
        Delay in seconds before the first freshness check.
    fetch_on_connect : bool
        Fetch one REST snapshot whenever the stream (re)connects so a
        value is available before the first push record arrives.
    api_trace_enabled : bool
        Log redacted request/response bodies at DEBUG level.
    """

    token: str
    station_id: str
    rest_base_url: str = REST_BASE_URL
    ws_url: str = WS_URL
    request_timeout: float = 30.0
    heartbeat: float = 30.0
    initial_reconnect_delay: float = 30.0
    reconnect_growth: float = 2.0
    max_reconnect_delay: float = 300.0
    rate_limit_min_delay: float = 180.0
    reconnect_jitter: float = 0.3
    max_retries: int = 10
    staleness_window: float = 5 * 60
    fallback_interval: float = 10 * 60
    initial_check_delay: float = 10.0
    fetch_on_connect: bool = True
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        if not str(self.token).strip():
            raise TempestConfigError("token must be non-empty")
        if not str(self.station_id).strip():
            raise TempestConfigError("station_id must be non-empty")
        if self.reconnect_growth <= 1:
            raise TempestConfigError(f"reconnect_growth must be > 1, got {self.reconnect_growth}")
        if self.max_retries < 1:
            raise TempestConfigError(f"max_retries must be >= 1, got {self.max_retries}")

    @classmethod
    def from_env(cls, **overrides: Any) -> TempestConfig:
        """Create configuration from environment variables.

        Reads ``TEMPEST_TOKEN``, ``TEMPEST_STATION_ID`` and optional
        ``TEMPEST_*`` tuning variables. Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TempestConfig
            Populated configuration.

        Raises
        ------
        TempestConfigError
            If the token or station id is missing, or a numeric variable
            cannot be parsed.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "TEMPEST_TOKEN": "token",
            "TEMPEST_STATION_ID": "station_id",
            "TEMPEST_REST_BASE_URL": "rest_base_url",
            "TEMPEST_WS_URL": "ws_url",
        }
        _ENV_FLOAT_MAP = {
            "TEMPEST_REQUEST_TIMEOUT": "request_timeout",
            "TEMPEST_HEARTBEAT": "heartbeat",
            "TEMPEST_STALENESS_WINDOW": "staleness_window",
            "TEMPEST_FALLBACK_INTERVAL": "fallback_interval",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = float(val)
            except ValueError as exc:
                raise TempestConfigError(f"{env_key} must be numeric, got {val!r}") from exc

        retries_env = env.get("TEMPEST_MAX_RETRIES")
        if retries_env is not None and "max_retries" not in overrides:
            try:
                config_kwargs["max_retries"] = int(retries_env)
            except ValueError as exc:
                raise TempestConfigError(f"TEMPEST_MAX_RETRIES must be an integer, got {retries_env!r}") from exc

        if "fetch_on_connect" not in overrides:
            config_kwargs["fetch_on_connect"] = _env_bool(env.get("TEMPEST_FETCH_ON_CONNECT"), True)

        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(env.get("TEMPEST_API_TRACE_ENABLED"), False)

        config_kwargs.update(overrides)

        for required in ("token", "station_id"):
            if required not in config_kwargs:
                raise TempestConfigError(f"Missing {required} (set TEMPEST_{required.upper()})")

        return cls(**config_kwargs)
