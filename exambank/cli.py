"""
CLI Interface
=============
Command-line interface for the question importer.

Usage:
    python -m exambank preview <pdf_path> [--json-output]
    python -m exambank import <xlsx_path> --course BSGE [options]
    python -m exambank confirm <preview_json> --course BSGE --subject ... --difficulty ...
    python -m exambank template <out_path> --course BSABEN
    python -m exambank init-db
    python -m exambank serve
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .database import QuestionStore
from .engine import ImporterConfig, ImportOrchestrator
from .errors import CommitError, InputRejectedError
from .models import COURSE_VARIANTS, VALID_DIFFICULTIES, get_course_variant
from .spreadsheet import build_template

console = Console()

COURSE_CHOICE = click.Choice(list(COURSE_VARIANTS), case_sensitive=False)


@click.group()
@click.version_option(version=__version__, prog_name="exambank")
def cli():
    """Exam Bank Importer — question ingestion from PDFs and spreadsheets."""
    pass


def _db_option(func):
    return click.option(
        "--db",
        "db_path",
        default=None,
        help="SQLite database path (defaults to $EXAMBANK_DB_PATH)",
    )(func)


def _log_level_option(func):
    return click.option(
        "--log-level",
        default="INFO",
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
        help="Logging level",
    )(func)


def _json_option(func):
    return click.option(
        "--json-output",
        is_flag=True,
        default=False,
        help="Output only JSON result to stdout (for programmatic use)",
    )(func)


def _make_orchestrator(
    db_path: str, log_level: str, json_output: bool, init_store: bool = True
) -> ImportOrchestrator:
    if json_output:
        # Suppress console output for JSON mode
        log_level = "ERROR"
    store = QuestionStore(db_path)
    if init_store:
        store.init()
    return ImportOrchestrator(store, ImporterConfig(log_level=log_level))


def _fail(message: str):
    console.print(f"[red]Error:[/] {escape(message)}")
    sys.exit(1)


# ─── Commands ─────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True, dir_okay=False))
@_log_level_option
@_json_option
def preview(pdf_path: str, log_level: str, json_output: bool):
    """Parse a PDF exam sheet and show the questions found. Nothing is saved."""
    # Preview never touches the database
    orchestrator = _make_orchestrator(None, log_level, json_output, init_store=False)

    try:
        result = orchestrator.preview_pdf(Path(pdf_path).read_bytes(), pdf_path)
    except InputRejectedError as e:
        _fail(str(e))

    if json_output:
        print(json.dumps(result.model_dump(by_alias=True), indent=2, ensure_ascii=False))
        return

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]PDF Preview[/]\n"
            f"[dim]{os.path.basename(pdf_path)}[/]",
            border_style="cyan",
        )
    )
    _display_preview(result)


@cli.command("import")
@click.argument("xlsx_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--course", "-c", required=True, type=COURSE_CHOICE, help="Course code")
@click.option("--created-by", default=None, help="Uploader id stored on each question")
@_db_option
@_log_level_option
@_json_option
def import_cmd(
    xlsx_path: str,
    course: str,
    created_by: str,
    db_path: str,
    log_level: str,
    json_output: bool,
):
    """Import questions from a spreadsheet into the question bank."""
    orchestrator = _make_orchestrator(db_path, log_level, json_output)

    try:
        result = orchestrator.import_spreadsheet(
            Path(xlsx_path).read_bytes(),
            xlsx_path,
            course=course,
            created_by=created_by,
        )
    except (InputRejectedError, CommitError) as e:
        _fail(str(e))

    if json_output:
        print(json.dumps(result.model_dump(by_alias=True), indent=2, ensure_ascii=False))
        return

    _display_import_result(result, f"Spreadsheet Import ({course.upper()})")


@cli.command()
@click.argument("preview_json", type=click.Path(exists=True, dir_okay=False))
@click.option("--course", "-c", required=True, type=COURSE_CHOICE, help="Course code")
@click.option("--subject", "-s", required=True, help="Default subject")
@click.option(
    "--difficulty", "-d",
    required=True,
    type=click.Choice(list(VALID_DIFFICULTIES)),
    help="Default difficulty",
)
@click.option("--area", "-a", default=None, help="Default area (area-based courses)")
@click.option("--created-by", default=None, help="Uploader id stored on each question")
@_db_option
@_log_level_option
@_json_option
def confirm(
    preview_json: str,
    course: str,
    subject: str,
    difficulty: str,
    area: str,
    created_by: str,
    db_path: str,
    log_level: str,
    json_output: bool,
):
    """Commit reviewed questions from a (possibly edited) preview JSON file."""
    with open(preview_json, "r", encoding="utf-8") as f:
        data = json.load(f)
    questions = data.get("questions", []) if isinstance(data, dict) else data

    orchestrator = _make_orchestrator(db_path, log_level, json_output)
    try:
        result = orchestrator.confirm_pdf_import(
            questions,
            course=course,
            default_subject=subject,
            default_difficulty=difficulty,
            default_area=area,
            created_by=created_by,
        )
    except (InputRejectedError, CommitError, ValidationError) as e:
        _fail(str(e))

    if json_output:
        print(json.dumps(result.model_dump(by_alias=True), indent=2, ensure_ascii=False))
        return

    _display_import_result(result, f"PDF Import ({course.upper()})")


@cli.command()
@click.argument("out_path", type=click.Path(dir_okay=False))
@click.option("--course", "-c", default="BSABEN", type=COURSE_CHOICE, help="Course code")
def template(out_path: str, course: str):
    """Write the spreadsheet import template for a course."""
    variant = get_course_variant(course)
    Path(out_path).write_bytes(build_template(variant))
    console.print(f"[green]✓[/] Template for {variant.code} written to {out_path}")


@cli.command("init-db")
@_db_option
def init_db_cmd(db_path: str):
    """Create the question bank schema."""
    store = QuestionStore(db_path)
    store.init()
    console.print(f"[green]✓[/] Database ready at {store.db_path}")


@cli.command()
@click.option("--host", default="0.0.0.0", help="Server host")
@click.option("--port", default=5000, type=int, help="Server port")
@click.option("--debug", is_flag=True, default=False, help="Debug mode")
def serve(host: str, port: int, debug: bool):
    """Start the HTTP import service."""
    from .server import run_server

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Exam Bank Import Service[/]\n"
            f"[dim]Starting on {host}:{port}[/]",
            border_style="cyan",
        )
    )
    console.print()

    run_server(host=host, port=port, debug=debug)


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _display_preview(preview):
    console.print()
    table = Table(title="Parsed Questions", border_style="cyan")
    table.add_column("#", justify="right")
    table.add_column("Category")
    table.add_column("Question")
    table.add_column("Options", justify="center")
    table.add_column("Answer", justify="center")

    for q in preview.questions:
        text = q.question_text
        if len(text) > 60:
            text = text[:57] + "..."
        table.add_row(
            escape(q.question_number),
            escape(q.category),
            escape(text),
            "".join(q.options),
            q.correct_answer or "[yellow]?[/]",
        )

    console.print(table)
    console.print()
    console.print(f"[bold]{escape(preview.message)}[/]")
    if preview.warning:
        console.print(f"[yellow]⚠ {escape(preview.warning)}[/]")
    console.print()


def _display_import_result(result, title: str):
    console.print()
    table = Table(title=title, border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Imported", f"[green]{result.imported}[/]")
    table.add_row("Skipped", str(result.skipped))
    table.add_row("Validation errors", str(len(result.errors)))
    table.add_row("Duplicates in file", str(len(result.duplicates_in_file)))
    table.add_row("Already in bank", str(len(result.duplicates_in_db)))
    console.print(table)

    if result.errors:
        errors = Table(title="Errors", border_style="red")
        errors.add_column("Row", justify="right")
        errors.add_column("Reason")
        for err in result.errors:
            errors.add_row(str(err.row), escape(err.reason))
        console.print(errors)

    duplicates = result.duplicates_in_file + result.duplicates_in_db
    if duplicates:
        dupes = Table(title="Duplicates", border_style="yellow")
        dupes.add_column("Row", justify="right")
        dupes.add_column("Question")
        for d in sorted(duplicates, key=lambda d: d.row):
            dupes.add_row(str(d.row), escape(d.text))
        console.print(dupes)

    console.print()


# ─── Entry point (for python -m exambank.cli) ─────────────────────────────────


if __name__ == "__main__":
    cli()
