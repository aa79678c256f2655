"""Command line interface for :mod:`agent_brain`.

This module uses `Typer` to expose commands for completing prompts as a named
agent, inspecting agents, providers and daily usage, pruning old episodic
memory and running the HTTP server.
"""

import asyncio
import json
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import typer

from .agent import build_runtime
from .config import Settings
from .errors import ConfigurationError, FatalRoutingError, StorageUnavailable
from .models import Complexity, CompletionRequest
from .utils.logging import configure_logging
from .utils.tracing import configure_tracing

app = typer.Typer(add_completion=False, help="Run and inspect persistent agents")


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Optional[Path] = typer.Option(None, help="Directory for persisted memory tiers"),
    providers_file: Optional[Path] = typer.Option(None, help="JSON provider definitions"),
) -> None:
    """agent-brain command line interface."""
    settings = Settings.load()
    updates = {}
    if data_dir is not None:
        updates["data_dir"] = data_dir
    if providers_file is not None:
        if not providers_file.exists():
            typer.echo(f"Providers file not found: {providers_file}", err=True)
            raise typer.Exit(code=1)
        updates["providers_file"] = providers_file
    settings = settings.model_copy(update=updates)
    configure_logging(settings.log_level, settings.log_path, settings.log_max_bytes)
    configure_tracing(settings.otel_trace_url)
    ctx.obj = {"settings": settings}


@app.command()
def complete(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Agent name"),
    prompt: str = typer.Argument(..., help="Prompt text"),
    task_type: str = typer.Option("general", help="Task type tag"),
    complexity: Optional[Complexity] = typer.Option(None, help="Complexity tier"),
    preferred_provider: Optional[str] = typer.Option(None, help="Provider to try first"),
    session_id: Optional[str] = typer.Option(None, help="Working memory scope"),
) -> None:
    """Complete PROMPT as agent NAME and print the result."""
    directory = build_runtime(ctx.obj["settings"])
    request = CompletionRequest(
        prompt=prompt,
        task_type=task_type,
        complexity=complexity,
        preferred_provider=preferred_provider,
        session_id=session_id,
    )
    try:
        result = asyncio.run(directory.complete(name, request))
    except (ConfigurationError, FatalRoutingError) as exc:
        typer.echo(
            json.dumps(
                {
                    "error": str(exc),
                    "kind": exc.kind,
                    "attempts": [asdict(a) for a in getattr(exc, "attempts", [])],
                }
            ),
            err=True,
        )
        raise typer.Exit(code=3 if isinstance(exc, ConfigurationError) else 4)
    typer.echo(
        json.dumps(
            {
                "provider": result.provider,
                "response": result.response,
                "cost": result.cost,
                "cached": result.cached,
                "selfHealed": result.self_healed,
                "memoryContextUsed": result.memory_context_used,
                "agentId": result.agent_id,
            },
            indent=2,
        )
    )


@app.command()
def stats(ctx: typer.Context, name: str = typer.Argument(..., help="Agent name")) -> None:
    """Print the aggregate statistics of agent NAME."""
    directory = build_runtime(ctx.obj["settings"])
    try:
        data = asyncio.run(directory.get(name).stats())
    except StorageUnavailable as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(data, indent=2))


@app.command("prune-episodes")
def prune_episodes(ctx: typer.Context) -> None:
    """Delete episodic records older than the retention window."""
    directory = build_runtime(ctx.obj["settings"])
    removed = asyncio.run(directory.memory.prune_episodic())
    typer.echo(f"Removed {removed} episodic record(s)")


@app.command()
def usage(
    ctx: typer.Context,
    days: int = typer.Option(7, min=1, help="Number of days to include, today first"),
) -> None:
    """Print per-provider calls, tokens and cost over the last DAYS days."""
    directory = build_runtime(ctx.obj["settings"])
    try:
        data = asyncio.run(directory.memory.usage_stats(days))
    except StorageUnavailable as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(data, indent=2))


@app.command()
def providers(
    ctx: typer.Context,
    probe: bool = typer.Option(False, "--probe", help="Ping every backend before reporting"),
) -> None:
    """List configured providers and their health."""
    directory = build_runtime(ctx.obj["settings"])
    for entry in asyncio.run(directory.router.registry.health(probe)):
        status = "ok" if entry["healthy"] else "unhealthy"
        typer.echo(
            f"{entry['id']}\t{entry['kind']}\t{entry['maxComplexity']}\t{status}"
            f"\tfailures={entry['failureCount']}"
        )


@app.command()
def agents(ctx: typer.Context) -> None:
    """List persisted agent ids with interaction and semantic memory counts."""
    directory = build_runtime(ctx.obj["settings"])

    async def collect():
        rows = []
        for agent_id in await directory.memory.list_agents():
            state = await directory.memory.read_aggregate(agent_id)
            memories = await directory.memory.semantic_count(agent_id)
            rows.append((agent_id, state.total_interactions, memories))
        return rows

    try:
        rows = asyncio.run(collect())
    except StorageUnavailable as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    if not rows:
        typer.echo("No agents found")
    for agent_id, interactions, memories in rows:
        typer.echo(f"{agent_id}\tinteractions={interactions}\tmemories={memories}")


@app.command()
def serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
) -> None:
    """Run the HTTP server with uvicorn."""
    import uvicorn

    from .server import create_app

    uvicorn.run(create_app(settings=ctx.obj["settings"]), host=host, port=port)


if __name__ == "__main__":  # pragma: no cover
    app()
