"""Main CLI application using Typer."""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from conduit import __version__

app = typer.Typer(
    name="conduit",
    help="Conduit - ReAct agent engine for remote tool executors",
    no_args_is_help=True,
)

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load(config_path: str | None):
    from conduit.config.loader import ConfigError, load_config

    try:
        return load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def version():
    """Show conduit version."""
    console.print(f"conduit version {__version__}")


@app.command()
def init(
    path: str = typer.Option(None, "--path", "-p", help="Where to write the config file"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config"),
):
    """Write a default configuration file."""
    from conduit.config.loader import DEFAULT_CONFIG_PATH, save_config
    from conduit.config.schema import ConduitConfig

    target = Path(path) if path else DEFAULT_CONFIG_PATH
    if target.exists() and not force:
        console.print(f"[yellow]Config already exists at {target}[/yellow]")
        console.print("Use [bold]--force[/bold] to overwrite.")
        raise typer.Exit(code=1)

    save_config(ConduitConfig(), target)
    console.print(f"[green]Wrote default config to {target}[/green]")
    console.print("Set [bold]llm.account_id[/bold] and [bold]llm.api_key[/bold] before serving.")


@app.command()
def serve(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
    host: str = typer.Option(None, "--host", help="Override server.host"),
    port: int = typer.Option(None, "--port", help="Override server.port"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every loop step"),
):
    """Start the conduit API server."""
    import uvicorn

    from conduit.server.app import create_app

    _setup_logging(verbose)
    config = _load(config_path)
    if host:
        config.server.host = host
    if port:
        config.server.port = port
    if verbose:
        config.agent.verbose = True

    try:
        fastapi_app = create_app(config)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    console.print(
        f"[green]Starting conduit server on {config.server.host}:{config.server.port}[/green]"
    )
    console.print(f"Model: {config.llm.model} ({config.llm.backend})")
    console.print(f"Executor endpoint: ws://{config.server.host}:{config.server.port}/connect")
    console.print("\nPress Ctrl+C to stop")

    uvicorn.run(
        fastapi_app,
        host=config.server.host,
        port=config.server.port,
        log_level="debug" if verbose else "info",
    )


@app.command()
def agents(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """List the agent catalog."""
    from conduit.agent.engine import build_agent_registry

    config = _load(config_path)
    registry = build_agent_registry(config)

    table = Table(title=f"Agents ({len(registry.ids)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Tools", style="yellow")
    table.add_column("Max Iter", justify="right")
    table.add_column("Purpose")

    for agent in registry.list_agents():
        table.add_row(
            agent.id,
            agent.name,
            ", ".join(agent.enabled_tool_ids) or "-",
            str(agent.max_iterations),
            agent.purpose,
        )

    console.print(table)


def main():
    app()


if __name__ == "__main__":
    main()
