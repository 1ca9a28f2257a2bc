"""
Signoff CLI — signoff serve | setup-webhook | doctor | gen-secret
"""
import asyncio
import secrets
import sys

import click


def _load(config: str | None, require: bool = True):
    from signoff.config.settings import Settings, load_settings

    try:
        if require:
            return load_settings(config)
        return Settings.from_yaml(config) if config else Settings.from_env()
    except ValueError as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1) from e


@click.group()
@click.version_option(package_name="signoff")
def cli() -> None:
    """Signoff — human-in-the-loop approval relay."""
    pass


@cli.command()
@click.option("--config", "config", type=click.Path(exists=True), default=None, help="YAML config file")
@click.option("--host", default=None, help="Bind address (overrides web.host)")
@click.option("--port", type=int, default=None, help="Bind port (overrides web.port)")
def serve(config: str | None, host: str | None, port: int | None) -> None:
    """Run the HTTP server."""
    import uvicorn

    from signoff.core.exceptions import ConfigurationError
    from signoff.interfaces.web import create_app

    settings = _load(config)
    if host:
        settings.web.host = host
    if port:
        settings.web.port = port

    try:
        app = create_app(settings=settings)
    except ConfigurationError as e:
        click.echo(f"Cannot start: {e.message}", err=True)
        for error in e.details.get("errors", []):
            click.echo(f"  - {error}", err=True)
        raise SystemExit(1) from e

    click.echo(f"Starting Signoff on {settings.web.host}:{settings.web.port}...")
    uvicorn.run(app, host=settings.web.host, port=settings.web.port, log_config=None)


@cli.command("setup-webhook")
@click.option("--config", "config", type=click.Path(exists=True), default=None, help="YAML config file")
def setup_webhook(config: str | None) -> None:
    """Register <public_url>/webhook with Telegram."""
    from signoff.core.exceptions import DeliveryError
    from signoff.interfaces.telegram import TelegramGateway

    settings = _load(config)
    if settings.telegram is None or not settings.web.public_url:
        click.echo("telegram and web.public_url must be configured", err=True)
        raise SystemExit(1)

    url = f"{settings.web.public_url}/webhook"
    gateway = TelegramGateway(settings.telegram.bot_token, settings.telegram.admin_chat_id)
    try:
        ok = asyncio.run(
            gateway.register_webhook(url, secret_token=settings.telegram.webhook_secret)
        )
    except DeliveryError as e:
        click.echo(f"Webhook registration failed: {e.details.get('description', e.message)}", err=True)
        raise SystemExit(1) from e
    if not ok:
        click.echo("Webhook registration refused by Telegram", err=True)
        raise SystemExit(1)
    click.echo(f"Webhook registered: {url}")


@cli.command()
@click.option("--config", "config", type=click.Path(exists=True), default=None, help="YAML config file")
@click.option("--url", default=None, help="Base URL of a running server (default: local web.port)")
def doctor(config: str | None, url: str | None) -> None:
    """Validate configuration and probe /health."""
    from signoff.observability.health import run_health_check

    settings = _load(config, require=False)
    errors = settings.validate_required_config()
    if errors:
        click.echo("Configuration: FAIL")
        for error in errors:
            click.echo(f"  - {error}")
    else:
        click.echo("Configuration: OK")

    base_url = url or f"http://127.0.0.1:{settings.web.port}"
    label, body = asyncio.run(run_health_check(base_url))
    click.echo(f"Server ({base_url}): {label}")
    if body:
        store = body.get("store", {})
        click.echo(f"  pending={store.get('pending', 0)} decisions={store.get('decisions', 0)}")

    if errors or label == "FAIL":
        sys.exit(1)


@cli.command("gen-secret")
def gen_secret() -> None:
    """Print a random value suitable for SIGNOFF_SECURITY__SECRET_KEY."""
    click.echo(secrets.token_urlsafe(32))


if __name__ == "__main__":
    cli()
