"""
Configuration management for the Exact Online OAuth2 strategy.

This module handles loading and validating the OAuth2 client settings
for Exact Online, including environment-variable indirection for secrets.
"""

import os
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

CONFIG_PREFIX = "EXACT_"

DEFAULT_REGION = "nl"

# Exact Online runs a separate site per country; accounts only exist on one.
REGION_PRESETS = {
    "nl": {"name": "Netherlands", "domain": "start.exactonline.nl"},
    "be": {"name": "Belgium", "domain": "start.exactonline.be"},
    "de": {"name": "Germany", "domain": "start.exactonline.de"},
    "uk": {"name": "United Kingdom", "domain": "start.exactonline.co.uk"},
    "us": {"name": "United States", "domain": "start.exactonline.com"},
    "es": {"name": "Spain", "domain": "start.exactonline.es"},
    "fr": {"name": "France", "domain": "start.exactonline.fr"},
}


class ConfigurationError(ValueError):
    """Raised when the strategy cannot be configured.

    This is fatal at startup and never reported as a login failure.
    """


def get_region_preset(name: str) -> dict:
    """Return the endpoint defaults for an Exact Online region."""
    preset = REGION_PRESETS.get(name.lower())
    if preset is None:
        raise ConfigurationError(
            f"Unknown Exact Online region {name!r}, "
            f"expected one of: {', '.join(REGION_PRESETS)}"
        )
    domain = preset["domain"]
    return {
        "site": f"https://{domain}/api/v1",
        "authorize_url": f"https://{domain}/api/oauth2/auth",
        "token_url": f"https://{domain}/api/oauth2/token",
    }


def resolve(value: Any, key: str = "value") -> str:
    """
    Resolve a configured credential to its literal value.

    Accepts a plain string, a ``("system", "ENV_VAR")`` tuple or the
    string form ``"system:ENV_VAR"``; the latter two are read from the
    process environment.

    Args:
        value: The configured value
        key: Name of the setting, used in error messages

    Returns:
        The literal credential

    Raises:
        ConfigurationError: If the value is missing or has an unexpected shape
    """
    if value is None or value == "":
        raise ConfigurationError(f"{key} missing from Exact Online configuration")

    env_key = None
    if isinstance(value, (tuple, list)):
        if len(value) != 2 or value[0] != "system" or not isinstance(value[1], str):
            raise ConfigurationError(
                f"{key} must be a string or a ('system', ENV_VAR) pair, got {value!r}"
            )
        env_key = value[1]
    elif isinstance(value, str):
        if not value.startswith("system:"):
            return value
        env_key = value[len("system:"):]
    else:
        raise ConfigurationError(f"{key} must be a string, got {type(value).__name__}")

    resolved = os.environ.get(env_key)
    if not resolved:
        raise ConfigurationError(
            f"{env_key!r} missing from environment, expected for {key}"
        )
    return resolved


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "1", "yes", "on"):
        return True
    if isinstance(value, str) and value.lower() in ("false", "0", "no", "off"):
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class ProviderConfig:
    """Exact Online OAuth2 client configuration."""

    client_id: str
    client_secret: str

    # Callback URL registered with the Exact app; Exact requires HTTPS
    redirect_uri: str = ""

    region: str = DEFAULT_REGION
    site: str = "https://start.exactonline.nl/api/v1"
    authorize_url: str = "https://start.exactonline.nl/api/oauth2/auth"
    token_url: str = "https://start.exactonline.nl/api/oauth2/token"

    # Profile field used as the identity uid
    uid_field: str = "UserID"
    send_redirect_uri: bool = True
    default_scope: str = ""

    # Seconds; None leaves httpx's default in place
    timeout: Optional[float] = None

    def __post_init__(self):
        if not self.client_id:
            raise ConfigurationError("client_id missing from Exact Online configuration")
        if not self.client_secret:
            raise ConfigurationError(
                "client_secret missing from Exact Online configuration"
            )

    def __repr__(self) -> str:
        return (
            f"ProviderConfig(client_id={self.client_id!r}, client_secret='***', "
            f"redirect_uri={self.redirect_uri!r}, site={self.site!r}, "
            f"uid_field={self.uid_field!r})"
        )

    def merge(self, **overrides) -> "ProviderConfig":
        """Return a copy with call-site overrides applied."""
        unknown = set(overrides) - set(self.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(
                f"Unknown Exact Online option(s): {', '.join(sorted(unknown))}"
            )
        return replace(self, **overrides)

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[str, Any], prefix: str = CONFIG_PREFIX
    ) -> "ProviderConfig":
        """
        Create configuration from a mapping such as ``app.config`` or ``os.environ``.

        Hardcoded region defaults are applied first, then the explicit
        endpoint settings from the mapping.

        Args:
            mapping: Source of ``EXACT_*`` settings
            prefix: Key prefix

        Raises:
            ConfigurationError: If required settings are missing or malformed
        """
        if not isinstance(mapping, Mapping):
            raise ConfigurationError(
                "Exact Online configuration is not a mapping, as expected"
            )

        def get(name, default=None):
            return mapping.get(f"{prefix}{name}", default)

        region = get("REGION", DEFAULT_REGION) or DEFAULT_REGION
        options = get_region_preset(region)
        for name in ("site", "authorize_url", "token_url"):
            value = get(name.upper())
            if value:
                options[name] = value

        timeout = get("TIMEOUT")
        if timeout not in (None, ""):
            try:
                timeout = float(timeout)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"{prefix}TIMEOUT must be a number, got {timeout!r}"
                ) from e
        else:
            timeout = None

        return cls(
            client_id=resolve(get("CLIENT_ID"), f"{prefix}CLIENT_ID"),
            client_secret=resolve(get("CLIENT_SECRET"), f"{prefix}CLIENT_SECRET"),
            redirect_uri=get("REDIRECT_URI", "") or "",
            region=region.lower(),
            uid_field=get("UID_FIELD", "UserID") or "UserID",
            send_redirect_uri=_parse_bool(
                get("SEND_REDIRECT_URI", True), f"{prefix}SEND_REDIRECT_URI"
            ),
            default_scope=get("DEFAULT_SCOPE", "") or "",
            timeout=timeout,
            **options,
        )

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        """Create configuration from environment variables."""
        return cls.from_mapping(os.environ)
