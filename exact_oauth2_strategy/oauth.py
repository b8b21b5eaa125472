"""
OAuth2 client for Exact Online.

Wraps the authorize, token and refresh endpoints and the REST API used to
look up the signed-in user. Exact expects ``client_secret`` as a request
parameter on every call, on top of the usual client authentication.
"""

import logging
from typing import Optional

import httpx
from authlib.common.urls import add_params_to_uri
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import OAuth2Client
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri

from .config import ProviderConfig
from .models import TokenSet

logger = logging.getLogger(__name__)

PROFILE_PATH = "/current/Me"


class ExactOAuthClient:
    """
    Exact Online OAuth2 client.

    Each method opens its own HTTP client, issues at most one request and
    closes it again; nothing is cached between calls.
    """

    def __init__(
        self,
        config: ProviderConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            config: Process-wide provider configuration
            transport: Optional httpx transport, mostly useful for tests
        """
        self.config = config
        self._transport = transport

    def build_client(self, token: Optional[dict] = None, **overrides) -> OAuth2Client:
        """
        Construct an OAuth2 client for requests to Exact.

        Options are merged in increasing priority: region defaults, process
        configuration, then ``overrides``.

        Raises:
            ConfigurationError: If an override is unknown or removes a credential
        """
        config = self.config.merge(**overrides) if overrides else self.config

        client_kwargs = {}
        if config.timeout is not None:
            client_kwargs["timeout"] = config.timeout
        if self._transport is not None:
            client_kwargs["transport"] = self._transport

        return OAuth2Client(
            client_id=config.client_id,
            client_secret=config.client_secret,
            scope=config.default_scope or None,
            redirect_uri=config.redirect_uri or None,
            token=token,
            **client_kwargs,
        )

    def authorize_url(self, params: Optional[dict] = None, **overrides) -> str:
        """
        Build the Exact authorization URL for the request phase.

        Args:
            params: Extra query parameters such as ``state`` or ``redirect_uri``

        Returns:
            The URL to redirect the user-agent to
        """
        config = self.config.merge(**overrides) if overrides else self.config
        params = dict(params or {})
        state = params.pop("state", None)

        url = prepare_grant_uri(
            config.authorize_url,
            config.client_id,
            "code",
            redirect_uri=params.pop("redirect_uri", None),
            scope=params.pop("scope", None) or config.default_scope or None,
            **params,
        )
        # An empty state is still passed through
        if state is not None:
            url = add_params_to_uri(url, [("state", state)])
        logger.debug(f"Authorization URL: {url}")
        return url

    def exchange_code(
        self, code: str, redirect_uri: Optional[str] = None, **overrides
    ) -> TokenSet:
        """
        Exchange an authorization code for a token set.

        When Exact answers with an error payload the returned token set has no
        access token and carries ``error``/``error_description`` in
        ``other_params``. Transport errors are not caught.
        """
        config = self.config.merge(**overrides) if overrides else self.config

        with self.build_client(**overrides) as client:
            try:
                token = client.fetch_token(
                    config.token_url,
                    grant_type="authorization_code",
                    code=code,
                    redirect_uri=redirect_uri or config.redirect_uri or None,
                    client_secret=config.client_secret,
                )
            except OAuthError as e:
                logger.warning(f"Token endpoint returned error: {e.error}")
                return TokenSet.from_response(
                    {"error": e.error, "error_description": e.description}
                )

        logger.debug("Exchanged authorization code for access token")
        return TokenSet.from_response(token)

    def refresh_token(self, refresh_token: str, **overrides) -> TokenSet:
        """
        Obtain a new token set using a refresh token.

        Raises:
            OAuthError: If Exact rejects the refresh token
            httpx.HTTPError: On transport failures
        """
        config = self.config.merge(**overrides) if overrides else self.config

        with self.build_client(**overrides) as client:
            token = client.refresh_token(
                config.token_url,
                refresh_token=refresh_token,
                client_secret=config.client_secret,
            )

        token_set = TokenSet.from_response(token)
        if token_set.refresh_token is None:
            token_set.refresh_token = refresh_token

        logger.debug("Refreshed access token")
        return token_set

    def get(self, token: TokenSet, path: str, params: Optional[dict] = None) -> httpx.Response:
        """
        Issue an authenticated GET against the Exact REST API.

        ``path`` is relative to the configured site, which already includes
        the ``/api/v1`` prefix.
        """
        url = f"{self.config.site.rstrip('/')}/{path.lstrip('/')}"
        request_params = dict(params or {})
        request_params["client_secret"] = self.config.client_secret

        # No expires_at here: refreshing is left to the caller.
        client_token = {
            "access_token": token.access_token,
            "token_type": (token.token_type or "Bearer").lower(),
        }

        with self.build_client(token=client_token) as client:
            response = client.get(url, params=request_params)

        logger.debug(f"GET {url} -> {response.status_code}")
        return response

    def fetch_profile(self, token: TokenSet, path: str = PROFILE_PATH) -> httpx.Response:
        """Fetch the current user's profile; the response is returned unclassified."""
        return self.get(token, path)
