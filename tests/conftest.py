"""Shared fixtures: provider config and a mock Exact Online backend on httpx MockTransport."""

import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from exact_oauth2_strategy.config import ProviderConfig
from exact_oauth2_strategy.oauth import ExactOAuthClient
from exact_oauth2_strategy.strategy import ExactStrategy

SITE = "https://start.exactonline.nl/api/v1"
TOKEN_URL = "https://start.exactonline.nl/api/oauth2/token"
REDIRECT_URI = "https://app.example.com/auth/exact/callback"

PROFILE = {
    "UserID": "u1",
    "FullName": "A B",
    "FirstName": "A",
    "Email": "a@x.com",
    "PictureUrl": "https://start.exactonline.nl/docs/picture.png",
}

TOKEN_RESPONSE = {
    "access_token": "access-123",
    "refresh_token": "refresh-456",
    "token_type": "bearer",
    "expires_in": 600,
}


class MockExact:
    """Mock Exact Online endpoints; records every request it serves."""

    def __init__(self):
        self.requests = []
        self.token_status = 200
        self.token_body = dict(TOKEN_RESPONSE)
        self.profile_status = 200
        self.profile_body = {"d": {"results": [dict(PROFILE)]}}
        self.profile_error = None
        self.token_error = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url.startswith(TOKEN_URL):
            if self.token_error is not None:
                raise self.token_error
            return httpx.Response(self.token_status, json=self.token_body)

        if url.startswith(f"{SITE}/current/Me"):
            if self.profile_error is not None:
                raise self.profile_error
            if isinstance(self.profile_body, (dict, list)):
                return httpx.Response(self.profile_status, json=self.profile_body)
            return httpx.Response(self.profile_status, text=self.profile_body)

        return httpx.Response(404, json={"message": "not found"})

    def form(self, index: int = -1) -> dict:
        """Decoded form body of a recorded request."""
        body = self.requests[index].content.decode()
        return {k: v[0] for k, v in parse_qs(body).items()}

    def query(self, index: int = -1) -> dict:
        url = urlparse(str(self.requests[index].url))
        return {k: v[0] for k, v in parse_qs(url.query).items()}


@pytest.fixture
def config() -> ProviderConfig:
    return ProviderConfig(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri=REDIRECT_URI,
    )


@pytest.fixture
def exact() -> MockExact:
    return MockExact()


@pytest.fixture
def client(config, exact) -> ExactOAuthClient:
    return ExactOAuthClient(config, transport=httpx.MockTransport(exact))


@pytest.fixture
def strategy(config, client) -> ExactStrategy:
    return ExactStrategy(config, client)


def json_body(response):
    return json.loads(response.get_data(as_text=True))
