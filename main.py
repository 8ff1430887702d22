#!/usr/bin/env python3
"""
Boardroom - CLI Entry Point

A multi-model council that reviews business gates and returns a verdict.

Usage:
    boardroom run proj-42 --gate Strategic "Pricing for the CRM rollout"
    boardroom playground "How should we package a chatbot offer?"
    boardroom sessions --project proj-42
"""

# Load environment variables BEFORE importing config
# This ensures API keys are available when pydantic-settings initializes
from pathlib import Path
from dotenv import load_dotenv

# Load local .env first (project-specific settings)
load_dotenv(".env", override=False)

# Then load global ~/.boardroom/.env with override=True
_global_env = Path.home() / ".boardroom" / ".env"
if _global_env.exists():
    load_dotenv(_global_env, override=True)

import asyncio
import json
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

import config
from config import GATE_PERSONAS, reload_settings
from council import CouncilEngine
from errors import ChairmanFailure, QuorumNotMet
from governance import extract_risk_level, status_for_decision
from prompts import PromptBuilder
from providers import ProviderFactory
from schemas import CouncilSession, Decision, GateType
from store import JsonFileSessionStore

app = typer.Typer(
    name="boardroom",
    help="Boardroom - multi-model council for gate reviews",
    add_completion=False,
)
console = Console()

DECISION_STYLES = {
    Decision.APPROVED: "green",
    Decision.REJECTED: "red",
    Decision.NEEDS_REVISION: "yellow",
}


def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _prepare(verbose: bool = False) -> None:
    # Pick up .env changes and new API keys
    reload_settings()
    ProviderFactory.clear()
    _setup_logging(verbose)


def _engine(with_store: bool = True) -> CouncilEngine:
    settings = config.settings
    store = JsonFileSessionStore(settings.session_store_path) if with_store else None
    return CouncilEngine(
        settings.deliberation_config(),
        store=store,
        prompt_builder=PromptBuilder.from_settings(settings),
    )


def _load_context(context_file: Optional[Path]) -> dict:
    if context_file is None:
        return {}
    try:
        return json.loads(context_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error loading context file: {e}[/red]")
        raise typer.Exit(1)


def _print_session(session: CouncilSession) -> None:
    table = Table(show_header=True, title="Council Opinions")
    table.add_column("Persona")
    table.add_column("Role")
    table.add_column("Score", justify="right")
    table.add_column("Opinion")
    for opinion in session.opinions:
        table.add_row(opinion.persona, opinion.role, str(opinion.score), opinion.opinion[:300])
    console.print(table)

    if session.aggregate_rankings:
        ranking = Table(show_header=True, title="Peer Ranking")
        ranking.add_column("#", justify="right")
        ranking.add_column("Model")
        ranking.add_column("Average rank", justify="right")
        ranking.add_column("Votes", justify="right")
        for position, entry in enumerate(session.aggregate_rankings, start=1):
            avg = f"{entry.average_rank:.2f}" if entry.average_rank is not None else "-"
            ranking.add_row(str(position), entry.model, avg, str(entry.rankings_count))
        console.print(ranking)

    if session.pricing:
        pricing = Table(show_header=True, title=f"Pricing ({session.pricing.currency})")
        pricing.add_column("Item")
        pricing.add_column("Cadence")
        pricing.add_column("Amount", justify="right")
        for item in session.pricing.line_items:
            pricing.add_row(item.label, item.cadence.value, f"{item.amount:,.2f}")
        pricing.add_row("[bold]First month[/bold]", "", f"[bold]{session.pricing.total_first_month:,.2f}[/bold]")
        console.print(pricing)

    style = DECISION_STYLES[session.decision]
    new_status = status_for_decision(session.gate_type, session.decision)
    footer = f"\n\n[dim]Risk level:[/dim] {extract_risk_level(session.synthesis)}"
    if new_status:
        footer += f"\n[dim]Project status ->[/dim] {new_status.value}"
    console.print(Panel(
        session.synthesis + footer,
        title=f"[bold {style}]{session.decision.value}[/bold {style}]",
        border_style=style,
    ))


@app.command()
def run(
    project_id: str = typer.Argument(..., help="Project under review"),
    topic: Optional[str] = typer.Argument(None, help="Decision question (defaults to '<gate> Gate')"),
    gate: GateType = typer.Option(GateType.STRATEGIC, "--gate", "-g", help="Gate type"),
    context_file: Optional[Path] = typer.Option(
        None, "--context", "-c",
        help="JSON file with project context",
    ),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="en or tr"),
    output_format: str = typer.Option(
        "markdown", "--output", "-o",
        help="Output format for --save: markdown or json",
    ),
    output_file: Optional[Path] = typer.Option(
        None, "--save", "-s",
        help="Save session to file",
    ),
    no_store: bool = typer.Option(False, "--no-store", help="Do not persist the session"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """
    Run a council gate review.

    1. Each council model gives an independent opinion
    2. Models rank each other's anonymized opinions
    3. The chairman issues the verdict

    Examples:
        boardroom run proj-42 "Pricing for the CRM rollout"
        boardroom run proj-42 --gate Risk -c context.json
    """
    _prepare(verbose)

    if language is not None and language not in ("en", "tr"):
        console.print("[red]Error: --language must be 'en' or 'tr'[/red]")
        raise typer.Exit(1)

    context = _load_context(context_file)
    final_topic = (topic or "").strip() or f"{gate.value} Gate"

    if not ProviderFactory.get_available():
        console.print("[red]Error: No LLM providers available.[/red]")
        console.print("Configure at least one API key in .env file.")
        raise typer.Exit(1)

    engine = _engine(with_store=not no_store)
    console.print(Panel(final_topic, title=f"{gate.value} Gate - {project_id}", border_style="blue"))

    try:
        session = asyncio.run(engine.run_council_session(
            project_id, gate, final_topic, context, language=language,
        ))
    except QuorumNotMet as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except ChairmanFailure as e:
        console.print(f"[red]Error: {e}[/red]")
        for opinion in e.opinions:
            console.print(f"  [cyan]{opinion.persona}[/cyan] ({opinion.score}): {opinion.opinion[:200]}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Council session interrupted[/yellow]")
        raise typer.Exit(0)

    _print_session(session)

    if output_file:
        if output_format == "json":
            output_file.write_text(session.model_dump_json(indent=2), encoding="utf-8")
        else:
            output_file.write_text(session.to_markdown(), encoding="utf-8")
        console.print(f"\n[green]Session saved to {output_file}[/green]")


@app.command()
def playground(
    prompt: str = typer.Argument(..., help="Question for the council"),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="en or tr"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Ask the council an ad hoc question. Nothing is stored."""
    _prepare(verbose)

    if not ProviderFactory.get_available():
        console.print("[red]Error: No LLM providers available.[/red]")
        raise typer.Exit(1)

    engine = _engine(with_store=False)
    try:
        result = asyncio.run(engine.run_council_playground(prompt, language))
    except (QuorumNotMet, ChairmanFailure) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    for entry in result.stage1:
        console.print(Panel(
            entry.content[:500] + "..." if len(entry.content) > 500 else entry.content,
            title=f"[cyan]{entry.label} - {entry.persona}[/cyan]",
        ))
    console.print(Panel(result.final.content, title="[bold green]Chairman[/bold green]"))


@app.command()
def status():
    """Check status of available LLM providers."""
    _prepare()

    console.print("\n[bold]LLM Provider Status[/bold]\n")

    table = Table(show_header=True)
    table.add_column("Provider")
    table.add_column("Status")
    table.add_column("Default Model")

    chain = config.settings.provider_chain
    for name in ProviderFactory.names():
        provider = ProviderFactory.get(name)
        if provider.is_available():
            state = "[green]✓ Available[/green]"
            model = getattr(provider, "default_model", None) or "N/A"
        else:
            state = "[red]✗ Not configured[/red]"
            model = "-"
        if name not in chain:
            state += " [dim](not in chain)[/dim]"
        table.add_row(name, state, model)

    console.print(table)
    console.print("\n[dim]Council models:[/dim]")
    for model in config.settings.model_list:
        direct = ProviderFactory.model_to_provider(model)
        console.print(f"  {model} [dim](direct: {direct or '-'})[/dim]")
    console.print("[dim]Configure API keys in .env file[/dim]")


@app.command()
def gates():
    """List gate types and the personas on each board."""
    for gate, personas in GATE_PERSONAS.items():
        console.print(Panel(
            "\n".join(f"[bold]{p.name}[/bold] ({p.role})\n[dim]{p.focus}[/dim]" for p in personas),
            title=gate.value.upper(),
            border_style="blue",
        ))


@app.command()
def sessions(
    project_id: Optional[str] = typer.Option(None, "--project", "-p", help="Only this project"),
):
    """List stored council sessions."""
    _prepare()
    store = JsonFileSessionStore(config.settings.session_store_path)
    try:
        stored = asyncio.run(store.list(project_id))
    except (OSError, ValueError) as e:
        console.print(f"[red]Error reading sessions: {e}[/red]")
        raise typer.Exit(1)

    if not stored:
        console.print("[dim]No sessions stored[/dim]")
        return

    table = Table(show_header=True)
    table.add_column("Session")
    table.add_column("Project")
    table.add_column("Gate")
    table.add_column("Decision")
    table.add_column("Avg score", justify="right")
    table.add_column("Created")
    for session in stored:
        style = DECISION_STYLES[session.decision]
        table.add_row(
            session.id,
            session.project_id,
            session.gate_type.value,
            f"[{style}]{session.decision.value}[/{style}]",
            f"{session.average_score:.0f}",
            session.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h"),
    port: Optional[int] = typer.Option(None, "--port", "-p"),
):
    """Start the FastAPI server for API access."""
    import uvicorn
    _prepare()
    host = host or config.settings.host
    port = port or config.settings.port
    console.print(f"[green]Starting API server at http://{host}:{port}[/green]")
    console.print("[dim]API docs available at /docs[/dim]")
    uvicorn.run("api:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    app()
