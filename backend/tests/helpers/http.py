"""Request and response helpers shared by the API tests."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any


def json_headers(access_token: str | None = None) -> dict[str, str]:
    """JSON request headers, with ``Authorization: Bearer`` when a token is given."""
    headers = {"Accept": "application/json", "Content-Type": "application/json"}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    return headers


def assert_json_keys(body: Mapping[str, Any], expected: Iterable[str]) -> None:
    absent = sorted(set(expected) - set(body))
    assert not absent, f"response body lacks {absent}"
