"""
Flask blueprint for Exact Online sign-in.

This blueprint provides the following endpoints:
- GET /auth/exact - Redirect to the Exact Online login page
- GET /auth/exact/callback - OAuth2 callback (receives authorization code)
- POST /auth/exact/refresh - Exchange a refresh token for a new token set

What happens after a successful or failed login is up to the host
application, see ``ExactOAuth2Plugin``.
"""

import logging

import httpx
from authlib.common.errors import AuthlibBaseError
from flask import current_app, jsonify, redirect, request, url_for
from flask_smorest import Blueprint

from .config import ConfigurationError
from .models import RequestContext

logger = logging.getLogger(__name__)

EXTENSION_NAME = "exact_oauth2"

exact_bp = Blueprint(
    "exact_auth",
    __name__,
    url_prefix="/auth/exact",
    description="Exact Online authentication endpoints",
)


def get_plugin():
    """Return the plugin registered on the current app."""
    try:
        return current_app.extensions[EXTENSION_NAME]
    except KeyError:
        raise RuntimeError(
            "Exact Online plugin not initialized, call ExactOAuth2Plugin.init_app first"
        ) from None


def _request_context() -> RequestContext:
    plugin = get_plugin()
    callback_url = plugin.config.redirect_uri or url_for(".callback", _external=True)
    return RequestContext(params=request.args.to_dict(), callback_url=callback_url)


@exact_bp.route("/")
def login():
    """
    Redirect to Exact Online for authentication.

    Query Parameters:
        state: Opaque value returned unchanged on the callback (optional)
    """
    strategy = get_plugin().strategy
    try:
        authorization_url = strategy.begin_login(_request_context())
    except ConfigurationError as e:
        logger.error(f"Error initiating Exact Online login: {e}")
        return jsonify({"error": "Exact Online not configured", "message": str(e)}), 500

    logger.info("Initiating Exact Online login, redirecting to provider")
    return redirect(authorization_url)


@exact_bp.route("/callback")
def callback():
    """
    Exact Online callback endpoint.

    Exchanges the authorization code for a token, looks up the current
    user and hands the identity (or the errors) to the host application.
    """
    plugin = get_plugin()
    context = _request_context()

    try:
        result = plugin.strategy.complete_login(context)
    except ConfigurationError as e:
        logger.error(f"Error processing Exact Online callback: {e}")
        return jsonify({"error": "Exact Online not configured", "message": str(e)}), 500
    finally:
        plugin.strategy.cleanup(context)

    if result.ok:
        if plugin.on_login is not None:
            return plugin.on_login(result.identity)
        return jsonify(result.identity.to_dict())

    if plugin.on_failure is not None:
        return plugin.on_failure(result.errors)
    return jsonify({"errors": [error.to_dict() for error in result.errors]}), 401


@exact_bp.route("/refresh", methods=["POST"])
def refresh():
    """
    Exchange a refresh token for a new token set.

    Request body:
        {
            "refresh_token": "..."
        }
    """
    data = request.get_json(silent=True)

    if not data or not data.get("refresh_token"):
        return jsonify({"error": "Missing refresh_token"}), 400

    client = get_plugin().strategy.client
    try:
        token = client.refresh_token(data["refresh_token"])
    except AuthlibBaseError as e:
        logger.warning(f"Exact rejected refresh token: {e.error}")
        return jsonify({"error": e.error, "message": e.description}), 401
    except httpx.HTTPError as e:
        logger.error(f"Error refreshing Exact token: {e}")
        return jsonify({"error": "Failed to reach Exact Online"}), 502

    return jsonify(token.to_dict())
