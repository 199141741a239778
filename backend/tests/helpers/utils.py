"""Tiny helpers shared across test modules."""

from __future__ import annotations

from http.cookies import Morsel, SimpleCookie


def set_cookies(response) -> dict[str, Morsel]:
    """Parse every ``Set-Cookie`` header of a Flask test response.

    Returns
    -------
    dict[str, http.cookies.Morsel]
        Cookie name mapped to its morsel (value and attributes).
    """
    cookies = {}
    for header in response.headers.getlist("Set-Cookie"):
        parsed = SimpleCookie()
        parsed.load(header)
        cookies.update(parsed)
    return cookies


def is_cleared(morsel) -> bool:
    """Return ``True`` when a ``Set-Cookie`` morsel deletes the cookie."""
    return morsel.value == "" and (morsel["max-age"] in ("0", 0) or "1970" in morsel["expires"])
