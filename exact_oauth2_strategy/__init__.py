"""
exact-oauth2-strategy

An OAuth 2.0 sign-in strategy for Exact Online, the business and
accounting SaaS.

This package provides:
- OAuth 2.0 Authorization Code flow against Exact Online
- Lookup of the signed-in user via the Exact REST API
- A normalized identity record (uid, credentials, info, raw)
- A Flask blueprint and plugin for hosting the flow
"""

__version__ = "0.1.0"

from .config import ConfigurationError, ProviderConfig, resolve
from .models import AuthError, CallbackResult, Identity, RequestContext, TokenSet
from .oauth import ExactOAuthClient
from .strategy import ExactStrategy, Strategy
from .plugin import ExactOAuth2Plugin
from .blueprint import exact_bp

__all__ = [
    "AuthError",
    "CallbackResult",
    "ConfigurationError",
    "ExactOAuth2Plugin",
    "ExactOAuthClient",
    "ExactStrategy",
    "Identity",
    "ProviderConfig",
    "RequestContext",
    "Strategy",
    "TokenSet",
    "exact_bp",
    "resolve",
    "__version__",
]
