"""Kotoba CLI: record exposures, review items, and sync learning history."""

import asyncio
import json
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import typer

from kotoba.application.config import AppConfig, resolve_config
from kotoba.domain.errors import KotobaError
from kotoba.domain.models import HistoryRecord, ItemType, JlptLevel, SourceItem

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="kotoba: spaced-repetition history with offline-first sync.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage kotoba configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


class ExportFormat(str, Enum):
    CSV = "csv"
    ANKI = "anki"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_with_overrides(ctx: typer.Context, **overrides: Any) -> AppConfig:
    obj = ctx.obj or {}
    overrides.setdefault("data_dir", obj.get("data_dir"))
    overrides.setdefault("verbose", obj.get("verbose_bonus", 1))
    return resolve_config({k: v for k, v in overrides.items() if v is not None})


def _open(ctx: typer.Context, **overrides: Any):
    from kotoba.application.factory import open_history

    config = _resolve_with_overrides(ctx, **overrides)
    try:
        return config, open_history(config)
    except KotobaError as e:
        typer.secho(f"Could not load history: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


def _format_ms(ms: int | None) -> str:
    if not ms:
        return "-"
    from datetime import datetime, timezone

    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


def _record_line(r: HistoryRecord) -> str:
    jlpt = f" [{r.jlpt.value}]" if r.jlpt else ""
    return (
        f"{r.item_id}  {r.text or ''}{jlpt}  {r.meaning or ''}  "
        f"(due {_format_ms(r.next_review_date)}, interval {r.interval}d, "
        f"ease {r.ease_factor:.2f})"
    )


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
    data_dir: Annotated[
        Path | None, typer.Option(help="Directory holding the local history file.")
    ] = None,
):
    """Global settings for kotoba."""
    ctx.ensure_object(dict)
    ctx.obj["verbose_bonus"] = verbose
    ctx.obj["data_dir"] = data_dir
    if verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def record(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Stable item id, e.g. 'vocab-arigatou'.")],
    text: Annotated[str | None, typer.Option(help="Surface text.")] = None,
    meaning: Annotated[str | None, typer.Option(help="Short gloss.")] = None,
    reading: Annotated[str | None, typer.Option(help="Kana reading.")] = None,
    item_type: Annotated[
        ItemType | None, typer.Option("--type", help="grammar or vocab.")
    ] = None,
    jlpt: Annotated[JlptLevel | None, typer.Option(help="JLPT level (N5..N1).")] = None,
):
    """Record that an item was seen."""
    _, history = _open(ctx)
    item = SourceItem(
        id=item_id, text=text, type=item_type, meaning=meaning, jlpt=jlpt, reading=reading
    )
    history.record_exposure(item)
    rec = history.get(item_id)
    typer.echo(f"{item_id}: seen {rec.exposure_count if rec else 0} time(s)")


@app.command()
def review(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Item id to review.")],
    quality: Annotated[
        int, typer.Argument(min=0, max=5, help="Recall quality, 0 (blackout) to 5 (perfect).")
    ],
):
    """[bold green]Review[/bold green] an item and schedule its next repetition."""
    _, history = _open(ctx)
    if item_id not in history:
        typer.secho(f"Unknown item '{item_id}', nothing to review.", fg="yellow")
        return
    history.review_item(item_id, quality)
    rec = history.get(item_id)
    typer.echo(f"Next review: {_format_ms(rec.next_review_date)} (interval {rec.interval}d)")
    if rec.is_mastered:
        typer.secho(f"{item_id} graduated to mastered.", fg="green")


@app.command()
def due(
    ctx: typer.Context,
    limit: Annotated[
        int | None, typer.Option(min=0, help="Show at most this many items.")
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Emit JSON.")] = False,
):
    """List items due for review, most overdue first."""
    _, history = _open(ctx)
    items = history.get_due_items()
    if limit is not None:
        items = items[:limit]

    if as_json:
        typer.echo(json.dumps([r.to_payload() for r in items], ensure_ascii=False, indent=2))
        return

    if not items:
        typer.secho("Nothing due.", fg="green")
        return
    for r in items:
        typer.echo(_record_line(r))


@app.command()
def master(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Item id to toggle.")],
):
    """Toggle the mastered flag on an item."""
    _, history = _open(ctx)
    if item_id not in history:
        typer.secho(f"Unknown item '{item_id}'.", fg="yellow")
        return
    history.toggle_mastery(item_id)
    state = "mastered" if history.is_mastered(item_id) else "learning"
    typer.echo(f"{item_id}: {state}")


@app.command()
def status(ctx: typer.Context):
    """Show totals for the local history."""
    _, history = _open(ctx)
    s = history.summary()
    typer.echo(f"Items: {s.total}")
    typer.echo(f"Mastered: {s.mastered}")
    typer.echo(f"Due now: {s.due}")
    for level, count in sorted(s.by_jlpt.items()):
        typer.echo(f"  {level}: {count}")


@app.command()
def sync(
    ctx: typer.Context,
    user: Annotated[
        str | None, typer.Option("--user", "-u", help="Remote user id. Defaults to config.")
    ] = None,
    backend: Annotated[str | None, typer.Option(help="Remote backend: rest, memory.")] = None,
    remote_url: Annotated[str | None, typer.Option(help="Remote REST endpoint.")] = None,
):
    """[bold green]Sync[/bold green] local history with the remote store."""
    config = _resolve_with_overrides(
        ctx, user_id=user, backend=backend, remote_url=remote_url
    )

    from kotoba.main import execute_sync

    try:
        result = asyncio.run(execute_sync(config))
    except KotobaError as e:
        typer.secho(str(e), fg="red", err=True)
        raise typer.Exit(1) from e

    color = "green" if result.ok else "yellow"
    typer.secho(
        f"Sync {result.status}: pulled={result.pulled} adopted={result.adopted} "
        f"pushed={result.pushed}",
        fg=color,
    )
    if result.status == "pull_failed":
        raise typer.Exit(1)


@app.command("export")
def export(
    ctx: typer.Context,
    fmt: Annotated[
        ExportFormat, typer.Option("--format", help="csv or anki.")
    ] = ExportFormat.CSV,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write to file instead of stdout.")
    ] = None,
    due_only: Annotated[bool, typer.Option("--due-only", help="Export only due items.")] = False,
):
    """Export history as CSV or an Anki import file."""
    from kotoba.application.export import export_anki, export_csv

    _, history = _open(ctx)
    records = history.get_due_items() if due_only else list(history.snapshot().values())
    content = export_anki(records) if fmt == ExportFormat.ANKI else export_csv(records)

    if output is None:
        typer.echo(content)
        return
    output.write_text(content, encoding="utf-8")
    typer.secho(f"Wrote {len(records)} items to {output}", fg="green")


@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port.")] = 8777,
):
    """Run the HTTP server."""
    import uvicorn

    uvicorn.run("kotoba.server:app", host=host, port=port)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _resolve_with_overrides(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    if d.get("remote_api_key"):
        d["remote_api_key"] = "***"
    typer.echo(json.dumps(d, indent=2))
