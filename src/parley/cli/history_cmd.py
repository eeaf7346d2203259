"""Saved conversation browsing commands."""

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from parley.chat.persistence import ConversationPersistence
from parley.chat.replay import replay
from parley.chat.store import ConversationService
from parley.cli.common import SEGMENT_STYLES, format_millis, load_cli_config
from parley.config.schema import ParleyConfig
from parley.errors import ConversationNotFoundError, PersistenceError

console = Console()


def _load_service(config: ParleyConfig) -> ConversationService | None:
    persistence = ConversationPersistence(config.persistence.home_dir)
    service = ConversationService(persistence=persistence)
    try:
        persistence.on_start(service)
    except PersistenceError as e:
        console.print(f"[red]{e}[/red]")
        return None
    return service


def list_conversations(config_path: str | None = None) -> None:
    """Print a table of saved conversations.

    Args:
        config_path: Optional path to config file
    """
    config = load_cli_config(config_path, console)
    if config is None:
        return
    service = _load_service(config)
    if service is None:
        return

    conversations = service.list_conversations()
    if not conversations:
        console.print("[yellow]No saved conversations.[/yellow]")
        return

    table = Table(title="Conversations")
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Updated", style="dim")
    table.add_column("Messages", justify="right")

    for conversation in conversations:
        table.add_row(
            conversation.id,
            conversation.title or "",
            format_millis(conversation.update_timestamp),
            str(len(conversation.messages)),
        )

    console.print(table)


def show_conversation(conversation_id: str, config_path: str | None = None) -> None:
    """Replay a saved conversation the way it was displayed.

    Args:
        conversation_id: Conversation id
        config_path: Optional path to config file
    """
    config = load_cli_config(config_path, console)
    if config is None:
        return
    service = _load_service(config)
    if service is None:
        return

    try:
        conversation = service.get_conversation(conversation_id)
    except ConversationNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        return

    console.print(f"[bold]{conversation.title or conversation.id}[/bold]")
    for message in conversation.messages:
        if message.role == "user":
            timestamp = format_millis(int(message.metadata.get("timestamp", 0)))
            console.print(f"\n[bold cyan]You[/bold cyan] [dim]{timestamp}[/dim]")
            console.print(message.content)
            continue
        if message.role != "assistant":
            continue

        for segment in replay(
            message,
            config.stream.reasoning_open_marker,
            config.stream.reasoning_close_marker,
        ):
            title, style = SEGMENT_STYLES[segment.kind.value]
            heading = f"{title} [dim]{format_millis(segment.opened_at)}[/dim]"
            if segment.kind.value == "answer":
                console.print(f"\n[bold {style}]{heading}[/bold {style}]")
                console.print(Markdown(segment.text))
            else:
                console.print(Panel(segment.text.strip(), title=heading, border_style=style))
