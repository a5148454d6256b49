from __future__ import annotations

from pytempest._redact import redact_for_log, redact_url


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "type": "obs_st",
        "token": "abc-123",
        "nested": {"api_key": "k", "Authorization": "Bearer x"},
    }

    redacted = redact_for_log(payload)
    assert redacted["type"] == "obs_st"
    assert redacted["token"] == "<redacted>"
    assert redacted["nested"]["api_key"] == "<redacted>"
    assert redacted["nested"]["Authorization"] == "<redacted>"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_cuts_long_sequences() -> None:
    redacted = redact_for_log({"obs": [[i] for i in range(40)]}, max_items=3)
    assert redacted["obs"] == [[0], [1], [2], "<+37 items>"]


def test_redact_url_hides_token() -> None:
    url = "wss://ws.weatherflow.com/swd/data?token=secret-token&units=metric"
    redacted = redact_url(url)
    assert "secret-token" not in redacted
    assert "token=<redacted>" in redacted
    assert "units=metric" in redacted


def test_redact_url_without_query_is_unchanged() -> None:
    assert redact_url("https://swd.weatherflow.com/swd/rest/stations/1") == (
        "https://swd.weatherflow.com/swd/rest/stations/1"
    )
