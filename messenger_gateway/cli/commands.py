"""CLI commands for messenger-gateway."""

import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console

from messenger_gateway import __logo__, __version__

app = typer.Typer(
    name="messenger-gateway",
    help=f"{__logo__} messenger-gateway - Messenger to AG-UI relay",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} messenger-gateway v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """messenger-gateway - Messenger to AG-UI relay."""
    pass


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


@app.command()
def serve(
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to config.json"),
    host: str = typer.Option(None, "--host", help="Bind address (overrides config)"),
    port: int = typer.Option(None, "--port", "-p", help="Port (overrides config)"),
):
    """Start the webhook server."""
    import uvicorn

    from messenger_gateway.api.app import create_app
    from messenger_gateway.config.loader import load_config
    from messenger_gateway.errors import ConfigError
    from messenger_gateway.monitoring.metrics import GatewayMetrics
    from messenger_gateway.service import build_service

    try:
        config = load_config(config_path)
        config.ensure_ready()
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    configure_logging(config.effective_log_level)

    metrics = GatewayMetrics(prefix=config.server.metrics_prefix)
    service = build_service(config, metrics=metrics)
    web_app = create_app(service=service, metrics=metrics)

    bind_host = host or config.server.host
    bind_port = port or config.server.port
    console.print(f"{__logo__} Starting messenger-gateway on http://{bind_host}:{bind_port}")
    if not config.agui.base_url:
        console.print("[yellow]Warning: agui.base_url is not set; events will be logged and dropped[/yellow]")

    uvicorn.run(web_app, host=bind_host, port=bind_port, log_level=config.effective_log_level.lower())


@app.command()
def sign(
    body: str = typer.Option(..., "--body", "-b", help="Raw request body to sign"),
    secret: str = typer.Option(None, "--secret", "-s", help="App secret (defaults to config)"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to config.json"),
    algorithm: str = typer.Option("sha256", "--algorithm", help="sha256 or sha1"),
):
    """Print the X-Hub-Signature header value for a body."""
    from messenger_gateway.channels.signature import SUPPORTED_ALGORITHMS, create_signature_header
    from messenger_gateway.config.loader import load_config

    if algorithm not in SUPPORTED_ALGORITHMS:
        console.print(f"[red]Unsupported algorithm:[/red] {algorithm}")
        raise typer.Exit(1)

    if not secret:
        secret = load_config(config_path).facebook.app_secret
    if not secret:
        console.print("[red]No app secret given and facebook.appSecret is not configured[/red]")
        raise typer.Exit(1)

    console.print(create_signature_header(secret, body, algorithm), highlight=False)


if __name__ == "__main__":
    app()
