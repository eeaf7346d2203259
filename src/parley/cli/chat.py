"""Interactive chat REPL command."""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

from parley.chat.engine import ChatEngine, ChatStream, create_engine
from parley.cli.common import SEGMENT_STYLES, load_cli_config
from parley.errors import ConversationNotFoundError, PersistenceError
from parley.retrieval.advisor import build_filter_expression

if TYPE_CHECKING:
    from parley.chat.schema import Conversation
    from parley.config.schema import ParleyConfig

console = Console()


def chat_command(
    config_path: str | None = None,
    conversation_id: str | None = None,
    document_ids: list[str] | None = None,
) -> None:
    """Start interactive chat session.

    Args:
        config_path: Optional path to config file
        conversation_id: Saved conversation to continue
        document_ids: Documents retrieval is restricted to
    """
    config = load_cli_config(config_path, console)
    if config is None:
        return

    console.print(
        Panel.fit(
            f"[bold blue]parley chat[/bold blue]\n"
            f"Model: {config.provider.model} ({config.provider.backend})\n"
            f"Ctrl-C cancels a response, /exit to quit",
            border_style="blue",
        )
    )

    asyncio.run(_async_chat(config, conversation_id, document_ids or []))


async def _async_chat(
    config: ParleyConfig,
    conversation_id: str | None,
    document_ids: list[str],
) -> None:
    """Async chat loop.

    Args:
        config: Parley configuration
        conversation_id: Saved conversation to continue
        document_ids: Documents retrieval is restricted to
    """
    engine = create_engine(config)
    service = engine.service
    persistence = service.persistence

    if persistence is not None:
        try:
            persistence.on_start(service)
        except PersistenceError as e:
            console.print(f"[red]{e}[/red]")

    conversation = _open_conversation(engine, config, conversation_id)
    if conversation is None:
        return
    retrieval_filter = build_filter_expression(document_ids, config.retrieval.document_id_field)

    # Ctrl-C at the prompt raises KeyboardInterrupt; during a response it cancels
    signal.signal(signal.SIGINT, signal.default_int_handler)
    try:
        while True:
            try:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
            except KeyboardInterrupt:
                console.print("\n[yellow]Interrupted[/yellow]")
                if Confirm.ask("Exit chat?", default=False):
                    break
                continue
            except EOFError:
                break

            if not user_input.strip():
                continue
            if user_input.strip() in ("/exit", "/quit"):
                break

            stream = engine.stream(conversation, user_input, retrieval_filter)
            await _render(stream)
    finally:
        if persistence is not None:
            try:
                persistence.on_shutdown(service)
            except PersistenceError as e:
                console.print(f"[red]{e}[/red]")

    console.print("\n[cyan]Goodbye![/cyan]")


def _open_conversation(
    engine: ChatEngine,
    config: ParleyConfig,
    conversation_id: str | None,
) -> Conversation | None:
    service = engine.service
    if conversation_id is None:
        return service.create_conversation(config.chat.system_prompt, config.chat.options)
    try:
        conversation = service.get_conversation(conversation_id)
    except ConversationNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        return None
    console.print(f"Continuing [bold]{conversation.title}[/bold]")
    return conversation


async def _render(stream: ChatStream) -> None:
    """Print a stream's updates as they arrive, cancelling on Ctrl-C."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stream.cancel)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False

    current_kind = None
    try:
        async for update in stream.updates():
            kind = update.kind.value
            title, style = SEGMENT_STYLES[kind]
            if kind != current_kind:
                console.print(f"\n[bold {style}]{title}[/bold {style}]")
                current_kind = kind
            console.print(
                update.text,
                style=style if kind != "answer" else None,
                end="",
                markup=False,
                highlight=False,
            )
            if update.collapse:
                console.print("[dim](tool round finished)[/dim]")
                current_kind = None
        result = await stream.wait()
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)

    console.print()
    if result.cancelled:
        console.print("[yellow]Response cancelled[/yellow]")
    elif result.error is not None:
        console.print(f"[red]Error: {result.error}[/red]")
