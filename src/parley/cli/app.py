"""Main CLI application using Typer."""

import sys

import typer
from rich.console import Console

from parley import __version__

app = typer.Typer(
    name="parley",
    help="Parley - streaming conversation engine for LLM playgrounds",
    no_args_is_help=True,
)

console = Console()

CONFIG_HELP = "Path to config file (default: ~/.parley/parley.yaml)"


@app.command()
def version():
    """Show parley version."""
    console.print(f"parley version {__version__}")


@app.command()
def init(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
    backend: str = typer.Option(None, "--backend", "-b", help="ollama, openai or anthropic"),
    model: str = typer.Option(None, "--model", "-m", help="Model name"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config"),
    non_interactive: bool = typer.Option(
        False, "--non-interactive", "-y", help="Use defaults without prompting"
    ),
):
    """Write a starter configuration file."""
    from parley.cli.init_cmd import init_command

    init_command(
        config_path=config_path,
        backend=backend,
        model=model,
        force=force,
        non_interactive=non_interactive,
    )


@app.command()
def chat(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
    conversation_id: str = typer.Option(
        None, "--resume", "-r", help="Continue a saved conversation"
    ),
    document_ids: list[str] = typer.Option(
        None, "--doc", "-d", help="Restrict retrieval to this document id (repeatable)"
    ),
):
    """Start interactive chat session. Ctrl-C cancels the response in progress."""
    from parley.cli.chat import chat_command

    chat_command(
        config_path=config_path,
        conversation_id=conversation_id,
        document_ids=document_ids or [],
    )


@app.command()
def serve(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
    host: str = typer.Option(None, "--host", help="Override bind address"),
    port: int = typer.Option(None, "--port", "-p", help="Override port"),
):
    """Start the parley API server."""
    from parley.cli.server_cmd import serve_command

    serve_command(config_path=config_path, host=host, port=port)


history_app = typer.Typer(help="Browse saved conversations")
app.add_typer(history_app, name="history")


@history_app.command("list")
def history_list(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """List saved conversations, most recent first."""
    from parley.cli.history_cmd import list_conversations

    list_conversations(config_path=config_path)


@history_app.command("show")
def history_show(
    conversation_id: str = typer.Argument(..., help="Conversation id"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Replay a saved conversation."""
    from parley.cli.history_cmd import show_conversation

    show_conversation(conversation_id, config_path=config_path)


def main():
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
