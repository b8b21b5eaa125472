"""Tests for the Exact Online OAuth2 client: URL building, token calls and API requests."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from authlib.integrations.base_client import OAuthError

from exact_oauth2_strategy.config import ConfigurationError
from exact_oauth2_strategy.models import TokenSet

from .conftest import REDIRECT_URI, SITE


def _query(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


class TestAuthorizeUrl:
    def test_standard_parameters(self, client):
        url = client.authorize_url({"redirect_uri": REDIRECT_URI, "state": "xyz"})
        assert url.startswith("https://start.exactonline.nl/api/oauth2/auth?")
        query = _query(url)
        assert query["client_id"] == "client-id"
        assert query["response_type"] == "code"
        assert query["redirect_uri"] == REDIRECT_URI
        assert query["state"] == "xyz"

    def test_no_optional_parameters(self, client):
        query = _query(client.authorize_url())
        assert query == {"client_id": "client-id", "response_type": "code"}

    def test_overrides(self, client):
        url = client.authorize_url(authorize_url="https://start.exactonline.be/api/oauth2/auth")
        assert url.startswith("https://start.exactonline.be/api/oauth2/auth?")

    def test_unknown_override(self, client):
        with pytest.raises(ConfigurationError):
            client.authorize_url(nonsense=True)


class TestExchangeCode:
    def test_success(self, client, exact):
        token = client.exchange_code("the-code")

        assert isinstance(token, TokenSet)
        assert token.access_token == "access-123"
        assert token.refresh_token == "refresh-456"
        assert token.token_type == "bearer"
        assert token.expires_at is not None

        request = exact.requests[-1]
        assert request.method == "POST"
        assert request.headers["Accept"] == "application/json"
        form = exact.form()
        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "the-code"
        assert form["client_secret"] == "client-secret"
        assert form["redirect_uri"] == REDIRECT_URI

    def test_explicit_redirect_uri(self, client, exact):
        client.exchange_code("the-code", redirect_uri="https://other/callback")
        assert exact.form()["redirect_uri"] == "https://other/callback"

    def test_error_payload_becomes_token_without_access(self, client, exact):
        exact.token_status = 400
        exact.token_body = {"error": "invalid_grant", "error_description": "Code expired"}

        token = client.exchange_code("stale-code")

        assert token.access_token is None
        assert token.other_params["error"] == "invalid_grant"
        assert token.other_params["error_description"] == "Code expired"

    def test_transport_error_propagates(self, client, exact):
        exact.token_error = httpx.ConnectError("connection refused")
        with pytest.raises(httpx.ConnectError):
            client.exchange_code("the-code")


class TestRefreshToken:
    def test_success(self, client, exact):
        exact.token_body = {
            "access_token": "access-new",
            "refresh_token": "refresh-new",
            "token_type": "bearer",
            "expires_in": 600,
        }

        token = client.refresh_token("refresh-456")

        assert token.access_token == "access-new"
        assert token.refresh_token == "refresh-new"
        form = exact.form()
        assert form["grant_type"] == "refresh_token"
        assert form["refresh_token"] == "refresh-456"
        assert form["client_secret"] == "client-secret"

    def test_rejected(self, client, exact):
        exact.token_status = 400
        exact.token_body = {"error": "invalid_grant", "error_description": "Refresh token revoked"}

        with pytest.raises(OAuthError) as exc_info:
            client.refresh_token("refresh-456")
        assert exc_info.value.error == "invalid_grant"


class TestGet:
    def test_fetch_profile_sends_bearer_and_secret(self, client, exact):
        response = client.fetch_profile(TokenSet(access_token="access-123"))

        assert response.status_code == 200
        assert response.json()["d"]["results"][0]["UserID"] == "u1"

        request = exact.requests[-1]
        assert request.method == "GET"
        assert str(request.url).startswith(f"{SITE}/current/Me")
        assert request.headers["Authorization"] == "Bearer access-123"
        assert exact.query()["client_secret"] == "client-secret"

    def test_status_is_not_classified(self, client, exact):
        exact.profile_status = 401
        exact.profile_body = {"message": "Unauthorized"}

        response = client.fetch_profile(TokenSet(access_token="access-123"))

        assert response.status_code == 401

    def test_generic_get_with_params(self, client, exact):
        response = client.get(TokenSet(access_token="t"), "/does/not/exist", {"$top": "1"})

        assert response.status_code == 404
        query = exact.query()
        assert query["$top"] == "1"
        assert query["client_secret"] == "client-secret"
