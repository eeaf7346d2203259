"""Server command."""

from rich.console import Console

from parley.cli.common import load_cli_config

console = Console()


def serve_command(
    config_path: str | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Run the API server in the foreground.

    Args:
        config_path: Optional path to config file
        host: Bind address overriding the config
        port: Port overriding the config
    """
    config = load_cli_config(config_path, console)
    if config is None:
        return

    import uvicorn

    from parley.server.app import create_app

    host = host or config.server.host
    port = port or config.server.port
    app = create_app(config)

    console.print(f"[green]Starting parley server on {host}:{port}[/green]")
    console.print(f"Model: {config.provider.model} ({config.provider.backend})")
    console.print("\nPress Ctrl+C to stop")

    uvicorn.run(app, host=host, port=port, log_level=config.logging.level.lower())
