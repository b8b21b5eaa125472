"""
Flask plugin registration for the Exact Online strategy.

This module wires the strategy, its blueprint and CLI commands into a
Flask application.
"""

import logging
import os
from collections import ChainMap
from typing import Callable, List, Optional

from flask import Flask

from .blueprint import EXTENSION_NAME, exact_bp
from .cli import exact_cli
from .config import ProviderConfig
from .models import AuthError, Identity
from .strategy import ExactStrategy

logger = logging.getLogger(__name__)


class ExactOAuth2Plugin:
    """
    Exact Online sign-in for Flask.

    Configuration is read from ``app.config`` with environment variables as
    fallback, using the ``EXACT_`` prefix. Missing credentials abort
    ``init_app`` with ``ConfigurationError``.

    Example::

        def on_login(identity):
            session["user_id"] = identity.uid
            return redirect("/")

        ExactOAuth2Plugin(app, on_login=on_login)
    """

    def __init__(
        self,
        app: Flask = None,
        on_login: Optional[Callable[[Identity], object]] = None,
        on_failure: Optional[Callable[[List[AuthError]], object]] = None,
        strategy: Optional[ExactStrategy] = None,
    ):
        """
        Initialize the plugin.

        Args:
            app: Flask application instance (optional, can call init_app later)
            on_login: Called with the identity, returns the callback response
            on_failure: Called with the error list, returns the callback response
            strategy: Prebuilt strategy, skips loading configuration
        """
        self.app = app
        self.on_login = on_login
        self.on_failure = on_failure
        self.strategy = strategy
        self.config: ProviderConfig = strategy.config if strategy else None

        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask):
        """
        Initialize the plugin with a Flask application.

        Args:
            app: Flask application instance
        """
        self.app = app

        if self.strategy is None:
            self.config = ProviderConfig.from_mapping(ChainMap(app.config, os.environ))
            self.strategy = ExactStrategy(self.config)

        app.extensions[EXTENSION_NAME] = self
        app.register_blueprint(exact_bp)
        app.cli.add_command(exact_cli)

        logger.info("Exact Online OAuth2 plugin initialized")
        logger.info(f"Exact Online site: {self.config.site}")
        if not self.config.redirect_uri:
            logger.warning(
                "EXACT_REDIRECT_URI not set, callback URL will be derived from the request"
            )
