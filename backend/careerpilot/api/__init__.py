"""HTTP surface: one sub-package per API version, mounted under ``API_BASE_PREFIX``."""

from __future__ import annotations

from collections.abc import Iterable

from flask import Blueprint, Flask


def _join(*parts: str) -> str:
    return "/" + "/".join(p.strip("/") for p in parts if p.strip("/"))


def register_blueprint_group(
    app: Flask,
    *,
    base_prefix: str,
    entries: Iterable[tuple[Blueprint, str]],
) -> None:
    """Mount each ``(blueprint, suffix)`` at ``base_prefix/suffix``.

    An empty suffix mounts the blueprint at ``base_prefix`` itself.
    """
    for bp, suffix in entries:
        app.register_blueprint(bp, url_prefix=_join(base_prefix, suffix))


def init_app(app: Flask) -> None:
    from careerpilot.api.v1 import API_VERSION, REGISTRY

    base = _join(app.config.get("API_BASE_PREFIX", "/api"), API_VERSION)
    register_blueprint_group(app, base_prefix=base, entries=REGISTRY)


__all__ = ["init_app", "register_blueprint_group"]
