"""
QueryPilot CLI

Command-line interface for the query pipeline.

Usage:
    querypilot classify "list tickets assigned to John"    # Route a question
    querypilot sql "show top 5 people by name"             # Generate SQL
    querypilot plan "count open tickets" -c "SELECT ..." "Unknown column"
    querypilot search "ticket deadlines"                   # Inspect retrieval
    querypilot answer "where are bank details stored?"     # Analyst outline
    querypilot serve --port 5050                           # Run the API
"""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from querypilot import __version__
from querypilot.config import get_settings
from querypilot.database.catalog import SchemaFileNotFound
from querypilot.database.policy import SQLPolicyError
from querypilot.knowledge.embeddings import EmbeddingError
from querypilot.models.agent import AgentError
from querypilot.models.query import CorrectionFeedback, TargetDatabase
from querypilot.pipeline.orchestrator import QueryPipeline, build_pipeline

console = Console()

T = TypeVar("T")

CLI_ERRORS = (AgentError, SchemaFileNotFound, SQLPolicyError, EmbeddingError)


def configure_cli_logging(verbose: bool) -> None:
    level = logging.INFO if verbose else logging.WARNING
    for logger_name in ("querypilot", "httpx", "openai"):
        logging.getLogger(logger_name).setLevel(level)


def run_with_pipeline(action: Callable[[QueryPipeline], Awaitable[T]]) -> T:
    """Build the pipeline, run action and close it; exit 1 on known errors."""

    async def runner() -> T:
        pipeline = build_pipeline(get_settings())
        try:
            await pipeline.start()
            return await action(pipeline)
        finally:
            await pipeline.close()

    try:
        return asyncio.run(runner())
    except CLI_ERRORS as e:
        message = e.message if isinstance(e, AgentError) else str(e)
        console.print(f"[red]Error: {message}[/red]")
        sys.exit(1)


def print_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def print_sql(sql: str, title: str = "SQL") -> None:
    console.print(Panel(sql, title=f"[bold cyan]{title}[/bold cyan]", border_style="cyan"))


@click.group()
@click.version_option(version=__version__, prog_name="QueryPilot")
@click.option("--verbose", "-v", is_flag=True, help="Show pipeline logs")
def cli(verbose: bool):
    """QueryPilot - natural-language questions to read-only MySQL."""
    configure_cli_logging(verbose)


@cli.command()
@click.argument("question")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def classify(question: str, as_json: bool):
    """Route a question to the entities or DMS database."""

    async def action(pipeline: QueryPipeline):
        return pipeline.classify(question)

    result = run_with_pipeline(action)
    if as_json:
        print_json({"question": question, **result.model_dump(mode="json", by_alias=True)})
        return

    console.print(
        f"[bold green]{result.target.value}[/bold green] "
        f"(confidence {result.confidence:.2f}) - {result.reason}"
    )
    if result.candidate_tables:
        console.print(f"Candidate tables: {', '.join(result.candidate_tables)}")


@cli.command()
@click.argument("question")
@click.option(
    "--target",
    type=click.Choice([t.value for t in TargetDatabase]),
    default=None,
    help="Skip routing and generate for this database",
)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def sql(question: str, target: str | None, as_json: bool):
    """Generate SQL for a question."""

    async def action(pipeline: QueryPipeline):
        return await pipeline.generate_sql(
            question, target=TargetDatabase(target) if target else None
        )

    generated = run_with_pipeline(action)
    if as_json:
        print_json(generated.model_dump(mode="json"))
        return

    console.print(f"Database: [bold green]{generated.db_name.value}[/bold green]")
    print_sql(generated.sql)
    if generated.notes:
        console.print(generated.notes)


@cli.command()
@click.argument("question")
@click.option(
    "--correction",
    "-c",
    "corrections",
    type=(str, str),
    multiple=True,
    metavar="SQL ERROR",
    help="Earlier failed SQL and its database error (repeatable)",
)
@click.option(
    "--target",
    type=click.Choice([t.value for t in TargetDatabase]),
    default=None,
    help="Skip routing and plan for this database",
)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def plan(question: str, corrections: tuple[tuple[str, str], ...], target: str | None, as_json: bool):
    """Self-correcting query plan, replaying earlier failures."""
    feedback = [CorrectionFeedback(sql=s, error=e) for s, e in corrections]

    async def action(pipeline: QueryPipeline):
        return await pipeline.plan_query(
            question, feedback, target=TargetDatabase(target) if target else None
        )

    result = run_with_pipeline(action)
    if as_json:
        print_json(result.model_dump(mode="json", by_alias=True))
        return

    if result.success_status:
        print_sql(result.sql, title="Plan")
        if result.limit:
            console.print(f"Limit: {result.limit}")
    else:
        console.print("[yellow]No query generated[/yellow]")
    console.print(result.explanation)


@cli.command()
@click.argument("text")
def search(text: str):
    """Show the schema chunks retrieval returns for text."""

    async def action(pipeline: QueryPipeline):
        return await pipeline.vector_query(text)

    hits = run_with_pipeline(action)
    if not hits:
        console.print("[yellow]No results (embeddings disabled or index empty)[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Score", justify="right")
    table.add_column("DB")
    table.add_column("File")
    table.add_column("Content")
    for hit in hits:
        table.add_row(f"{hit.score:.3f}", hit.db.value, hit.filename, hit.content[:120])
    console.print(table)


@cli.command()
@click.argument("question")
def answer(question: str):
    """Which database answers a question, with an answer outline."""

    async def action(pipeline: QueryPipeline):
        return await pipeline.analyze(question)

    result = run_with_pipeline(action)
    console.print(
        Panel(
            result.answer or "(no answer)",
            title=f"[bold green]{result.db_name.value}[/bold green]",
        )
    )
    if result.rationale:
        console.print(f"Rationale: {result.rationale}")
    if result.plan.tables:
        console.print(f"Tables: {', '.join(result.plan.tables)}")


@cli.command()
@click.option("--host", default=None, help="Bind host (defaults to API_HOST)")
@click.option("--port", default=None, type=int, help="Bind port (defaults to API_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "querypilot.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.logging.level.lower(),
    )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
