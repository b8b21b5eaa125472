"""
Exact Online sign-in strategy.

Drives the two phases of an OAuth2 authorization-code login: building the
redirect to Exact, and turning the callback into an identity record or a
list of errors.
"""

import abc
import logging
from typing import Optional

import httpx
from authlib.common.errors import AuthlibBaseError

from .config import ConfigurationError, ProviderConfig
from .models import (
    AuthError,
    CallbackResult,
    Credentials,
    Identity,
    Info,
    RequestContext,
    TokenSet,
)
from .oauth import PROFILE_PATH, ExactOAuthClient

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "unknown error"


class Strategy(abc.ABC):
    """Interface a host integration drives for a single provider."""

    @abc.abstractmethod
    def begin_login(self, context: RequestContext) -> str:
        """Return the URL to redirect the user-agent to."""

    @abc.abstractmethod
    def complete_login(self, context: RequestContext) -> CallbackResult:
        """Handle the provider callback."""

    @abc.abstractmethod
    def cleanup(self, context: RequestContext) -> None:
        """Release per-request state."""


def _error_reason(response: httpx.Response) -> str:
    """Best-effort error message from an Exact error response body."""
    try:
        body = response.json()
    except ValueError:
        return UNKNOWN_ERROR

    if not isinstance(body, dict):
        return UNKNOWN_ERROR
    if isinstance(body.get("message"), str):
        return body["message"]

    # OData style: {"error": {"message": {"value": "..."}}}
    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, dict):
            message = message.get("value")
        if isinstance(message, str) and message:
            return message
    return UNKNOWN_ERROR


def _first_result(response: httpx.Response) -> Optional[dict]:
    try:
        results = response.json()["d"]["results"]
    except (ValueError, KeyError, TypeError):
        return None
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        return None
    return results[0]


class ExactStrategy(Strategy):
    """
    Sign in with Exact Online.

    The uid of the resulting identity is read from ``config.uid_field``
    (``UserID`` by default, a string UUID). Set it to ``Email`` to key
    users by e-mail address instead.
    """

    def __init__(self, config: ProviderConfig, client: Optional[ExactOAuthClient] = None):
        self.config = config
        self.client = client or ExactOAuthClient(config)

    def begin_login(self, context: RequestContext) -> str:
        """
        Build the redirect to the Exact login page.

        A ``state`` query parameter supplied by the caller is passed through
        unchanged; Exact returns it on the callback.
        """
        params = {}
        if self.config.send_redirect_uri:
            redirect_uri = context.callback_url or self.config.redirect_uri
            if redirect_uri:
                params["redirect_uri"] = redirect_uri

        if "state" in context.params:
            params["state"] = context.params["state"]

        return self.client.authorize_url(params)

    def complete_login(self, context: RequestContext) -> CallbackResult:
        """
        Handle the callback from Exact Online.

        Never raises for per-request failures; any error at any step is
        returned in the result and the token is dropped.
        """
        code = context.params.get("code")
        if code is None:
            return self._fail(context, AuthError("missing_code", "No code received"))

        redirect_uri = None
        if self.config.send_redirect_uri:
            redirect_uri = context.callback_url or self.config.redirect_uri or None

        try:
            token = self.client.exchange_code(code, redirect_uri=redirect_uri)
        except ConfigurationError:
            raise
        except (httpx.HTTPError, AuthlibBaseError, ValueError) as e:
            logger.warning(f"Token exchange with Exact failed: {e}")
            return self._fail(context, AuthError("OAuth2", str(e) or UNKNOWN_ERROR))

        if token.access_token is None:
            return self._fail(
                context,
                AuthError(
                    token.other_params.get("error") or "OAuth2",
                    token.other_params.get("error_description") or UNKNOWN_ERROR,
                ),
            )

        context.token = token
        error = self._fetch_user(context, token)
        if error is not None:
            return self._fail(context, error)

        logger.info(f"User {self.uid(context)} authenticated via Exact Online")
        return CallbackResult(identity=self.identity(context))

    def cleanup(self, context: RequestContext) -> None:
        """Clear the token and user stored on the context during the callback."""
        context.token = None
        context.user = None

    def uid(self, context: RequestContext):
        """The configured uid field of the fetched user, or None."""
        if context.user is None:
            return None
        return context.user.get(self.config.uid_field)

    def credentials(self, context: RequestContext) -> Optional[Credentials]:
        token = context.token
        if token is None:
            return None
        return Credentials(
            token=token.access_token,
            refresh_token=token.refresh_token,
            expires_at=token.expires_at,
            token_type=token.token_type,
            expires=True,
        )

    def info(self, context: RequestContext) -> Info:
        user = context.user
        if user is None:
            return Info()
        return Info(
            name=user.get("FullName"),
            nickname=user.get("UserName") or user.get("FirstName"),
            email=user.get("Email"),
            image=user.get("PictureUrl"),
        )

    def extra(self, context: RequestContext) -> dict:
        """Raw token and user as received from Exact."""
        if context.token is None and context.user is None:
            return {}
        return {"token": context.token, "user": context.user}

    def identity(self, context: RequestContext) -> Identity:
        return Identity(
            uid=self.uid(context),
            credentials=self.credentials(context),
            info=self.info(context),
            raw=self.extra(context),
        )

    def _fetch_user(self, context: RequestContext, token: TokenSet) -> Optional[AuthError]:
        try:
            response = self.client.fetch_profile(token, PROFILE_PATH)
        except (httpx.HTTPError, AuthlibBaseError) as e:
            logger.warning(f"Fetching Exact user failed: {e}")
            return AuthError("OAuth2", str(e) or UNKNOWN_ERROR)

        if response.status_code == 401:
            return AuthError("token", "unauthorized")

        if 200 <= response.status_code < 400:
            user = _first_result(response)
            if user is None:
                logger.warning("Exact returned no user for the current token")
                return AuthError("OAuth2", UNKNOWN_ERROR)
            context.user = user
            return None

        return AuthError("OAuth2", _error_reason(response))

    def _fail(self, context: RequestContext, error: AuthError) -> CallbackResult:
        logger.warning(f"Exact Online login failed: {error.kind}: {error.message}")
        self.cleanup(context)
        return CallbackResult(errors=[error])
