"""CLI entry point for opun."""

from __future__ import annotations

import json
import logging
import os
import uuid
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.table import Table

from opun import __version__
from opun.config import OpunConfig

if TYPE_CHECKING:
    from opun.providers.pty_provider import PTYProvider
    from opun.subagent.manager import SubAgentManager

app = typer.Typer(
    name="opun",
    help="Drive interactive AI coding assistants through a pseudo-terminal and delegate tasks to them.",
    no_args_is_help=True,
)

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _build_manager(
    config: OpunConfig, working_dir: str | None = None
) -> tuple[SubAgentManager, dict[str, PTYProvider]]:
    """Manager with the configured agents (or the defaults), one provider per assistant."""
    from opun.providers.pty_provider import PTYProvider
    from opun.subagent import SubAgentManager, create_adapter, default_configs

    manager = SubAgentManager(
        max_workers=config.delegation.max_workers,
        agents_dir=str(config.agents_path),
        retention=config.delegation.retention,
    )
    providers: dict[str, PTYProvider] = {}
    cwd = working_dir or config.working_dir or os.getcwd()

    for agent_config in config.agents or default_configs():
        provider = providers.get(agent_config.provider)
        if provider is None:
            provider = PTYProvider(agent_config.provider, working_dir=cwd, config=config.pty)
            providers[agent_config.provider] = provider
        manager.register(create_adapter(agent_config, provider=provider))

    return manager, providers


def _close_providers(providers: dict[str, PTYProvider]) -> None:
    for provider in providers.values():
        provider.close()


@app.command()
def agents(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Path to config file (JSON or YAML)."
    ),
) -> None:
    """List the configured subagents."""
    setup_logging(verbose)
    config = OpunConfig.load(config_file)

    from opun.subagent import default_configs

    table = Table(title="Subagents")
    table.add_column("Name", style="bold")
    table.add_column("Provider")
    table.add_column("Type")
    table.add_column("Strategy")
    table.add_column("Priority", justify="right")
    table.add_column("Capabilities")

    for agent in config.agents or default_configs():
        table.add_row(
            agent.name,
            agent.provider,
            agent.type.value,
            agent.strategy.value,
            str(agent.priority),
            ", ".join(agent.capabilities),
        )
    console.print(table)


@app.command()
def prompt(
    assistant: str = typer.Argument(help="Assistant to drive: claude, gemini or qwen."),
    text: str = typer.Argument(help="Prompt to send."),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", help="Seconds to wait for the reply."
    ),
    working_dir: str | None = typer.Option(
        None, "--cwd", help="Working directory for the assistant."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Path to config file (JSON or YAML)."
    ),
) -> None:
    """Send one prompt to an assistant and print its reply."""
    setup_logging(verbose)
    config = OpunConfig.load(config_file)

    from opun.errors import OpunError
    from opun.providers.pty_provider import PTYProvider

    provider = PTYProvider(
        assistant,
        working_dir=working_dir or config.working_dir or os.getcwd(),
        config=config.pty,
    )
    try:
        reply = provider.inject_prompt(text, timeout=timeout)
    except OpunError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        provider.close()
    typer.echo(reply)


@app.command()
def delegate(
    text: str = typer.Argument(help="Task description."),
    agent: str | None = typer.Option(
        None, "--agent", "-a", help="Agent to run the task. Omit to let the router choose."
    ),
    capability: list[str] = typer.Option(
        [], "--capability", help="Capability the task needs (repeatable)."
    ),
    working_dir: str | None = typer.Option(
        None, "--cwd", help="Working directory for the assistants."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Path to config file (JSON or YAML)."
    ),
) -> None:
    """Delegate a task to a subagent and print the result."""
    setup_logging(verbose)
    config = OpunConfig.load(config_file)

    from opun.errors import OpunError
    from opun.subagent.models import Task

    task = Task(
        id=uuid.uuid4().hex,
        name=text[:40],
        description=text,
        context={"capabilities": capability} if capability else {},
    )

    manager, providers = _build_manager(config, working_dir)
    try:
        if agent:
            result = manager.execute(task, agent)
        else:
            result = manager.delegate(task)
    except OpunError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        _close_providers(providers)

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        typer.echo(f"Agent: {result.agent_name}")
        typer.echo(f"Status: {result.status.value} ({result.duration:.1f}s)")
        typer.echo("---")
        typer.echo(result.output or result.error or "")
    if not result.ok:
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Print the opun version."""
    typer.echo(f"opun v{__version__}")


if __name__ == "__main__":
    app()
