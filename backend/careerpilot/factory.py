"""Application factory wiring Flask extensions, security and blueprints."""

from __future__ import annotations

from flask import Flask

from careerpilot.core.config import BaseConfig, ensure_signing_secrets, get_config
from careerpilot.core.logger import configure_logging, init_app as init_logging


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    :raises ConfigurationError: If the token signing secrets are missing.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Refuse to boot without usable signing keys
    ensure_signing_secrets(app.config)

    from careerpilot.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from careerpilot.core import cors

    cors.init_app(app)

    from careerpilot.core import security

    security.init_app(app)

    from careerpilot.api import init_app as init_api

    init_api(app)

    from careerpilot.core import errors

    errors.init_app(app)

    from careerpilot import cli as app_cli

    app_cli.init_app(app)

    return app
