"""
Flask CLI commands for the Exact Online strategy.

These commands help with setup and debugging of the Exact Online
integration.
"""

import os
from collections import ChainMap

import click
from flask import current_app
from flask.cli import with_appcontext

from .config import (
    CONFIG_PREFIX,
    REGION_PRESETS,
    ConfigurationError,
    ProviderConfig,
    get_region_preset,
)


def _load_config() -> ProviderConfig:
    return ProviderConfig.from_mapping(ChainMap(current_app.config, os.environ))


@click.group("exact")
def exact_cli():
    """Exact Online sign-in management commands."""
    pass


@exact_cli.command("show-config")
@with_appcontext
def show_config():
    """Display current Exact Online configuration."""
    try:
        config = _load_config()
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo("=== Exact Online Configuration ===")
    click.echo(f"Region: {config.region}")
    click.echo(f"Site: {config.site}")
    click.echo(f"Authorization URL: {config.authorize_url}")
    click.echo(f"Token URL: {config.token_url}")
    click.echo(f"Redirect URI: {config.redirect_uri or 'Derived from request'}")
    click.echo(f"Send Redirect URI: {config.send_redirect_uri}")
    click.echo(f"UID field: {config.uid_field}")
    click.echo(f"Client ID: {config.client_id[:8] + '...'}")
    click.echo("Client Secret: Configured")


@exact_cli.command("list-regions")
def list_regions():
    """List the Exact Online regions."""
    click.echo("=== Exact Online Regions ===\n")

    for name, preset in REGION_PRESETS.items():
        click.echo(f"{name}: {preset['name']} ({preset['domain']})")


@exact_cli.command("show-region")
@click.argument("name")
def show_region(name):
    """Show the endpoints for a region."""
    try:
        endpoints = get_region_preset(name)
    except ConfigurationError as e:
        click.echo(str(e), err=True)
        raise SystemExit(1)

    click.echo(f"=== Endpoints for {name} ===\n")
    click.echo(f"Site: {endpoints['site']}")
    click.echo(f"Authorization URL: {endpoints['authorize_url']}")
    click.echo(f"Token URL: {endpoints['token_url']}")

    click.echo("\n# To use this region set:")
    click.echo(f'{CONFIG_PREFIX}REGION: "{name.lower()}"')


@exact_cli.command("validate-config")
@with_appcontext
def validate_config():
    """Validate the current configuration."""
    warnings = []

    try:
        config = _load_config()
    except ConfigurationError as e:
        click.echo("=== Errors ===")
        click.echo(f"  x {e}")
        click.echo("\nConfiguration validation failed")
        raise SystemExit(1)

    if not config.redirect_uri:
        warnings.append(f"{CONFIG_PREFIX}REDIRECT_URI not configured (derived from request)")
    elif not config.redirect_uri.startswith("https://"):
        warnings.append("Exact Online only accepts HTTPS redirect URIs")

    if warnings:
        click.echo("=== Warnings ===")
        for warning in warnings:
            click.echo(f"  ! {warning}")

    click.echo("\n[OK] Configuration is valid!")


@exact_cli.command("test-connection")
@with_appcontext
def test_connection():
    """Test connectivity to Exact Online."""
    import httpx

    try:
        config = _load_config()
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo("=== Testing Exact Online Connectivity ===\n")

    for label, url in (
        ("Authorization URL", config.authorize_url),
        ("Token URL", config.token_url),
    ):
        try:
            with httpx.Client() as client:
                client.head(url, follow_redirects=True, timeout=config.timeout or 10)
            click.echo(f"[OK] {label} reachable: {url}")
        except httpx.HTTPError as e:
            click.echo(f"[FAIL] {label}: {e}")
