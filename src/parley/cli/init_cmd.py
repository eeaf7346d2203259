"""Initialize command - writes a starter parley.yaml."""

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

from parley.config.loader import ConfigError, resolve_config_path, save_config
from parley.config.schema import ParleyConfig

console = Console()

BACKENDS = ["ollama", "openai", "anthropic"]

# Suggested model per backend when none is given
DEFAULT_MODELS = {
    "ollama": "qwen3:8b",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-haiku-latest",
}


def build_config(backend: str, model: str | None = None) -> ParleyConfig:
    """Default configuration pointed at a backend and model."""
    config = ParleyConfig()
    config.provider.backend = backend
    config.provider.model = model or DEFAULT_MODELS[backend]
    return config


def init_command(
    config_path: str | None = None,
    backend: str | None = None,
    model: str | None = None,
    force: bool = False,
    non_interactive: bool = False,
) -> None:
    """Initialize parley configuration.

    Args:
        config_path: Where to write the config
        backend: Provider backend; prompted for when omitted
        model: Model name; defaults per backend
        force: Overwrite existing config if present
        non_interactive: Use defaults without prompting
    """
    path = resolve_config_path(config_path)

    console.print(
        Panel.fit(
            "[bold blue]parley initialization[/bold blue]\n"
            "Choosing a provider and writing your configuration...",
            border_style="blue",
        )
    )

    if path.exists() and not force:
        console.print(f"\n[yellow]Config already exists at {path}[/yellow]")
        console.print(
            "Use [bold]--force[/bold] to overwrite, or [bold]parley chat[/bold] to start using it."
        )
        raise typer.Exit(0)

    if backend is not None and backend not in BACKENDS:
        console.print(f"[red]Unknown backend '{backend}'. Choose one of: {', '.join(BACKENDS)}[/red]")
        raise typer.Exit(1)

    if backend is None:
        if non_interactive:
            backend = BACKENDS[0]
        else:
            backend = Prompt.ask("Provider backend", choices=BACKENDS, default=BACKENDS[0])

    config = build_config(backend, model)

    if not non_interactive and Confirm.ask("\nCustomize settings?", default=False):
        config.provider.model = Prompt.ask("Model name", default=config.provider.model)
        config.chat.system_prompt = Prompt.ask(
            "System prompt", default=config.chat.system_prompt
        )

        temp_str = Prompt.ask(
            "Temperature (0.0-2.0)",
            default=str(config.provider.temperature),
        )
        try:
            config.provider.temperature = float(temp_str)
        except ValueError:
            console.print("[yellow]Invalid temperature, using default[/yellow]")

    try:
        written = save_config(config, path)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    console.print(f"\n[green]✓ Configuration saved to {written}[/green]")
    console.print(f"  Backend: {config.provider.backend}  Model: {config.provider.model}")

    console.print("\nNext steps:")
    if config.provider.backend == "ollama":
        console.print(f"  1. Pull the model: [bold]ollama pull {config.provider.model}[/bold]")
    else:
        env_var = "OPENAI_API_KEY" if config.provider.backend == "openai" else "ANTHROPIC_API_KEY"
        console.print(f"  1. Export your API key: [bold]{env_var}[/bold]")
    console.print("  2. Start chatting: [bold]parley chat[/bold]")
    console.print("  3. Or start the API server: [bold]parley serve[/bold]")
