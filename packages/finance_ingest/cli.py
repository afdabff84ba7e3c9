"""Typer console interface for ``finance_ingest``.

Every command prints JSON to stdout; errors go to stderr with exit code 1.
The root callback loads ``.env`` from the working directory (never overriding
variables already set) and configures logging once.
"""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .config import Settings
from .errors import FinanceIngestError
from .logging_setup import configure_logging
from .models import Category

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Import bank CSV exports, detect duplicates, and categorize transactions.",
)

# Module-level option objects keep calls out of parameter defaults (ruff B008).
CSV_PATH_OPTION: OptionInfo = typer.Option(
    ...,
    "--csv-path",
    help="Path to a bank CSV export.",
    dir_okay=False,
    file_okay=True,
    exists=False,  # reported by the handler with a clearer message
)
USER_ID_OPTION: OptionInfo = typer.Option(..., "--user-id", help="Owning user id.")


def _emit(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


def _read_csv(csv_path: Path) -> bytes:
    try:
        return csv_path.read_bytes()
    except FileNotFoundError:
        raise _fail(f"File not found: {csv_path}") from None
    except PermissionError:
        raise _fail(f"Permission denied: {csv_path}") from None


def _store(database_url: str | None):
    from .store import SqlAlchemyRecordStore

    url = database_url or Settings.from_env().database_url
    if not url:
        raise _fail("DATABASE_URL is not set; pass --database-url or add it to .env")
    return SqlAlchemyRecordStore(database_url=url)


@app.command("parse-csv")
def parse_csv_cmd(csv_path: Annotated[Path, CSV_PATH_OPTION]) -> None:
    """Parse a CSV without touching the database and print the result."""

    from .parsers.csv_parser import parse_csv

    result = parse_csv(_read_csv(csv_path), file_name=csv_path.name)
    _emit(result.to_payload())


@app.command("import-csv")
def import_csv_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    user_id: Annotated[str, USER_ID_OPTION],
    skip_duplicates: bool | None = typer.Option(
        None,
        "--skip-duplicates/--keep-duplicates",
        help="Drop already-imported transactions (default from FI_SKIP_DUPLICATES, else skip).",
    ),
    database_url: str | None = typer.Option(
        None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Parse, de-duplicate, categorize, and store a CSV for a user."""

    from .api import import_csv

    settings = Settings.from_env()
    skip = settings.skip_duplicates if skip_duplicates is None else skip_duplicates
    content = _read_csv(csv_path)
    try:
        summary = import_csv(
            content,
            user_id,
            store=_store(database_url),
            file_name=csv_path.name,
            skip_duplicates=skip,
        )
    except FinanceIngestError as e:
        raise _fail(f"import failed: {e}") from e
    _emit(summary.to_payload())


@app.command("categorize")
def categorize_cmd(
    merchant: str = typer.Option(..., "--merchant", help="Merchant name to categorize."),
    description: str | None = typer.Option(None, "--description", help="Optional description."),
    user_id: str | None = typer.Option(
        None, "--user-id", help="Use this user's categories and learned patterns."
    ),
    category: list[str] | None = typer.Option(
        None,
        "--category",
        help="Category name to offer (repeatable); defaults to the user's catalog.",
    ),
    database_url: str | None = typer.Option(
        None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Categorize a single merchant/description pair."""

    from .api import load_categories
    from .categorize import categorize_transaction

    store = _store(database_url) if user_id else None
    try:
        if category:
            catalog = [Category(id=name, name=name) for name in category]
        elif user_id and store is not None:
            catalog = load_categories(user_id, store=store)
        else:
            raise _fail("pass --category or --user-id")
        result = categorize_transaction(
            {"merchant": merchant, "description": description},
            catalog,
            user_id,
            store=store,
        )
    except FinanceIngestError as e:
        raise _fail(f"categorize failed: {e}") from e
    _emit(result.to_payload())


@app.command("learned-patterns")
def learned_patterns_cmd(
    user_id: Annotated[str, USER_ID_OPTION],
    category_id: str | None = typer.Option(None, "--category-id", help="Only this category."),
    merchant: str | None = typer.Option(
        None, "--merchant", help="Case-insensitive substring of the merchant pattern."
    ),
    database_url: str | None = typer.Option(
        None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """List a user's learned merchant patterns, newest first."""

    from .learning import list_learned_patterns

    try:
        rules = list_learned_patterns(
            user_id,
            store=_store(database_url),
            category_id=category_id,
            merchant_pattern=merchant,
        )
    except FinanceIngestError as e:
        raise _fail(f"listing learned patterns failed: {e}") from e
    _emit({"patterns": [r.model_dump(mode="json") for r in rules], "count": len(rules)})


@app.command("stats")
def stats_cmd(
    user_id: Annotated[str, USER_ID_OPTION],
    start_date: str | None = typer.Option(None, "--start-date", help="Inclusive YYYY-MM-DD."),
    end_date: str | None = typer.Option(None, "--end-date", help="Inclusive YYYY-MM-DD."),
    database_url: str | None = typer.Option(
        None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Print categorization coverage statistics for a user."""

    from .api import categorization_statistics

    try:
        stats = categorization_statistics(
            user_id,
            store=_store(database_url),
            start_date=start_date,
            end_date=end_date,
        )
    except FinanceIngestError as e:
        raise _fail(f"statistics failed: {e}") from e
    _emit(dataclasses.asdict(stats))


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    log_level: str | None = typer.Option(
        None, "--log-level", help="Override FINANCE_INGEST_LOG_LEVEL."
    ),
    log_sql: bool = typer.Option(False, "--log-sql", help="Also log SQL statements."),
) -> None:
    """Load ``.env`` from the working directory and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level or Settings.from_env().log_level, sql=log_sql)

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
