"""
Data types passed between the strategy, the OAuth2 client and the host.
"""

import time
from dataclasses import asdict, dataclass, field
from typing import Any, List, Optional

# Fields of a token response that map onto TokenSet attributes
_TOKEN_FIELDS = ("access_token", "refresh_token", "token_type", "expires_at", "expires_in")


@dataclass
class TokenSet:
    """Access/refresh token pair returned by the token endpoint."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_at: Optional[int] = None
    other_params: dict = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict) -> "TokenSet":
        """
        Build a token set from a decoded token endpoint response.

        ``expires_at`` is computed from ``expires_in`` when the provider only
        sends a lifetime. Everything else ends up in ``other_params``.
        """
        data = dict(data or {})

        expires_at = data.get("expires_at")
        expires_in = data.get("expires_in")
        if expires_at is None and expires_in not in (None, ""):
            expires_at = int(time.time()) + int(expires_in)
        elif expires_at is not None:
            expires_at = int(expires_at)

        return cls(
            access_token=data.get("access_token") or None,
            refresh_token=data.get("refresh_token") or None,
            token_type=data.get("token_type") or "Bearer",
            expires_at=expires_at,
            other_params={k: v for k, v in data.items() if k not in _TOKEN_FIELDS},
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Credentials:
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    token_type: Optional[str] = None
    expires: bool = True


@dataclass
class Info:
    name: Optional[str] = None
    nickname: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None


@dataclass
class Identity:
    """Normalized identity record handed to the host application."""

    uid: Any
    credentials: Credentials
    info: Info
    raw: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize to plain JSON-compatible types."""
        token = self.raw.get("token")
        return {
            "uid": self.uid,
            "credentials": asdict(self.credentials),
            "info": asdict(self.info),
            "raw": {
                "token": token.to_dict() if isinstance(token, TokenSet) else token,
                "user": self.raw.get("user"),
            },
        }


@dataclass(frozen=True)
class AuthError:
    """A single login failure, tagged by kind."""

    kind: str
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


@dataclass
class CallbackResult:
    """Outcome of a callback: an identity or a non-empty list of errors."""

    identity: Optional[Identity] = None
    errors: List[AuthError] = field(default_factory=list)

    def __post_init__(self):
        if (self.identity is None) == (not self.errors):
            raise ValueError("CallbackResult needs exactly one of identity or errors")

    @property
    def ok(self) -> bool:
        return self.identity is not None


@dataclass
class RequestContext:
    """
    Per-request state for one login attempt.

    ``params`` are the inbound query parameters and ``callback_url`` the
    absolute URL of the callback route. ``token`` and ``user`` are filled in
    during the callback and released by ``ExactStrategy.cleanup``.
    """

    params: dict = field(default_factory=dict)
    callback_url: Optional[str] = None
    token: Optional[TokenSet] = None
    user: Optional[dict] = None
