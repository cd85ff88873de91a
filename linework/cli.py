# linework/cli.py
"""
CLI interface for linework.

Thin presentation layer over the tools/ service layer.
"""

import asyncio
import time
from collections import deque
from pathlib import Path

import typer

from linework.config.loader import get_config_dir, load_config
from linework.config.schema import LineworkConfig
from linework.errors import GenerationError, LineworkError
from linework.llm.client import GenAIClient
from linework.llm.factory import create_genai_client
from linework.logging_config import configure_logging
from linework.models.jobs import BatchState, JobKind, JobState
from linework.models.sqlite_store import SQLiteBatchStore
from linework.models.store import BatchStore


def _fmt_duration(seconds: float) -> str:
    """Format seconds as human-readable duration (e.g. '5m17s', '42s')."""
    s = int(seconds)
    if s < 60:
        return f"{s}s"
    m, s = divmod(s, 60)
    return f"{m}m{s:02d}s"


app = typer.Typer(
    name="linework",
    help="Batch generator for printable line-art coloring books.",
    no_args_is_help=True,
)

QUOTA_EXIT_CODE = 2


def _run(coro):
    """Run async function from sync CLI context."""
    return asyncio.run(coro)


def _load_config() -> LineworkConfig:
    config = load_config()
    configure_logging(config.output.verbosity, json_output=config.output.json_logs)
    return config


def _make_client(config: LineworkConfig) -> GenAIClient:
    return create_genai_client(config)


async def _get_store(recover: bool = False) -> BatchStore:
    """
    Open the SQLite batch store in the user config directory.

    Only commands that dispatch generation pass recover=True; read-only
    commands must not touch jobs a concurrent run still owns.
    """
    store = SQLiteBatchStore(str(get_config_dir() / "batches.db"))
    await store.initialize(recover=recover)
    return store


def _fail(e: Exception) -> None:
    """Print an error and exit non-zero; quota errors get their own exit code."""
    if isinstance(e, GenerationError) and e.is_quota:
        typer.echo(
            "Quota exhausted: the image service keeps rejecting requests. "
            "Progress so far is saved; wait a while, then resume the batch.",
            err=True,
        )
        raise typer.Exit(QUOTA_EXIT_CODE)
    typer.echo(f"Error: {e}", err=True)
    raise typer.Exit(1)


def _state_color(state: str) -> str:
    """Return ANSI color for job/batch state."""
    colors = {
        "completed": typer.colors.GREEN,
        "review": typer.colors.GREEN,
        "generating": typer.colors.YELLOW,
        "partial": typer.colors.YELLOW,
        "pending": typer.colors.CYAN,
        "planned": typer.colors.CYAN,
        "failed": typer.colors.RED,
    }
    return colors.get(state, typer.colors.WHITE)


_STATE_ICONS = {
    JobState.COMPLETED: ("✓", "green"),
    JobState.FAILED: ("✗", "red"),
    JobState.GENERATING: ("⟳", "yellow"),
    JobState.PENDING: ("○", "dim"),
}


def _make_live_display(batch: BatchState, elapsed: float, log_lines: list[str] | None = None):
    """Build a rich renderable for the live progress display."""
    from rich.console import Group
    from rich.panel import Panel
    from rich.table import Table
    from rich.text import Text

    table = Table.grid(padding=(0, 2))
    table.add_column(width=3)
    table.add_column(justify="right", style="dim", width=3)
    table.add_column()

    page_number = 0
    for job in batch.jobs:
        icon, style = _STATE_ICONS[job.state]
        if job.kind is JobKind.PAGE:
            page_number += 1
            number = str(page_number)
        else:
            number = ""
        row_style = "bold" if job.state is JobState.GENERATING else "dim"
        table.add_row(Text(icon, style=style), Text(number), Text(job.title, style=row_style))

    bar_width = 36
    filled = int(batch.progress * bar_width)
    bar = "█" * filled + "░" * (bar_width - filled)
    done = len(batch.in_state(JobState.COMPLETED))
    failed = len(batch.in_state(JobState.FAILED))
    bar_text = Text(
        f"\n  {bar}  {batch.progress * 100:.0f}%   "
        f"{done} done, {failed} failed   {_fmt_duration(elapsed)}",
        style="cyan",
    )

    parts: list = [table, bar_text]
    if log_lines:
        parts.append(Text(""))
        for line in log_lines:
            parts.append(Text(f"  {line}", style="dim"))
    parts.append(Text(""))

    title = batch.metadata.title or batch.topic
    return Panel(
        Group(*parts),
        title=Text(f" {title[:60]}{'…' if len(title) > 60 else ''} ", style="bold"),
        border_style="bright_black",
    )


async def _run_live(batch_id: str, store: BatchStore, config: LineworkConfig) -> None:
    """Run a batch with live rich progress, then print a summary."""
    from rich.console import Console
    from rich.live import Live

    from linework.orchestration.cancellation import CancelToken
    from linework.orchestration.orchestrator import ProgressEvent
    from linework.orchestration.signals import install_cancel_handlers
    from linework.tools.lookup import load_batch
    from linework.tools.run_batch import run_batch

    batch = await load_batch(batch_id, store)
    client = _make_client(config)
    console = Console(stderr=True)
    token = CancelToken()
    restore_signals = install_cancel_handlers(token)
    start = time.monotonic()
    log_lines: deque[str] = deque(maxlen=5)

    try:
        with Live(
            _make_live_display(batch, 0.0),
            console=console,
            refresh_per_second=4,
        ) as live:

            def _on_progress(event: ProgressEvent) -> None:
                for job_id in event.job_ids:
                    job = event.batch.get_job(job_id)
                    if job.state.terminal:
                        log_lines.append(f"{time.strftime('%H:%M:%S')} {job.title}: {job.state.value}")
                live.update(
                    _make_live_display(event.batch, time.monotonic() - start, list(log_lines))
                )

            outcome = await run_batch(
                batch.batch_id,
                client=client,
                store=store,
                config=config,
                progress_callback=_on_progress,
                cancel_token=token,
            )
            live.update(_make_live_display(outcome.batch, time.monotonic() - start, list(log_lines)))
    finally:
        restore_signals()
        await client.close()

    elapsed = _fmt_duration(time.monotonic() - start)
    console.print()
    if outcome.done and outcome.failed_count == 0:
        console.print(f"[green]✓ Done[/green]  {outcome.completed_count} image(s)  time: {elapsed}")
        console.print(f"[dim]Export with:[/dim] linework export {outcome.batch.batch_id}")
    elif outcome.done:
        console.print(
            f"[yellow]Done with failures[/yellow]  {outcome.completed_count} completed, "
            f"{outcome.failed_count} failed  time: {elapsed}"
        )
        console.print(f"[dim]Retry with:[/dim] linework retry {outcome.batch.batch_id} PAGE")
    else:
        console.print(
            f"[yellow]Stopped[/yellow] ({token.reason}). "
            f"Resume with: linework resume {outcome.batch.batch_id}"
        )


@app.command()
def create(
    topic: str = typer.Argument(..., help="What the coloring book is about"),
    age: str = typer.Option(None, "--age", "-a", help="Target reader age range, e.g. 4-8"),
    pages: int = typer.Option(None, "--pages", "-p", min=1, max=100, help="Number of pages"),
    width: float = typer.Option(None, "--width", help="Trim width"),
    height: float = typer.Option(None, "--height", help="Trim height"),
    unit: str = typer.Option(None, "--unit", help="Unit of width/height: in or px"),
    template: str = typer.Option(None, "--template", help="Cover template image to read the trim size from"),
    cover: bool = typer.Option(None, "--cover/--no-cover", help="Generate a front cover"),
    detach: bool = typer.Option(False, "--detach", "-d", help="Plan only, don't generate images"),
):
    """Plan a new book and generate its pages with live progress. Use --detach to plan only."""
    from linework.tools.create_book import create_book
    from linework.validation.sanitize import parse_dimensions

    config = _load_config()

    async def _create():
        store = await _get_store(recover=True)
        try:
            dimensions = None
            if width is not None or height is not None or unit is not None:
                dimensions = parse_dimensions(
                    config.book.width if width is None else width,
                    config.book.height if height is None else height,
                    unit or config.book.unit,
                )

            client = _make_client(config)
            try:
                batch = await create_book(
                    topic,
                    client=client,
                    store=store,
                    config=config,
                    target_age=age,
                    dimensions=dimensions,
                    page_count=pages,
                    include_cover=cover,
                    template_path=template,
                )
            finally:
                await client.close()

            typer.echo(
                f"Planned '{batch.metadata.title or batch.topic}' "
                f"({len(batch.pages)} pages, aspect {batch.aspect_ratio}) as batch {batch.batch_id}"
            )
            if detach:
                typer.echo(f"Run 'linework run {batch.batch_id}' to generate the images.")
                return

            await _run_live(batch.batch_id, store, config)
        finally:
            await store.close()

    try:
        _run(_create())
    except KeyboardInterrupt:
        typer.echo("\nCancelled.", err=True)
        raise typer.Exit(130)
    except (LineworkError, ValueError) as e:
        _fail(e)


def _run_command(batch_id: str) -> None:
    config = _load_config()

    async def _go():
        store = await _get_store(recover=True)
        try:
            await _run_live(batch_id, store, config)
        finally:
            await store.close()

    try:
        _run(_go())
    except KeyboardInterrupt:
        typer.echo("\nCancelled. Progress is saved.", err=True)
        raise typer.Exit(130)
    except (LineworkError, ValueError) as e:
        _fail(e)


@app.command("run")
def run_cmd(batch_id: str = typer.Argument(..., help="Batch ID to generate")):
    """Generate all pending pages of a batch. Ctrl+C stops after the current round."""
    _run_command(batch_id)


@app.command()
def resume(batch_id: str = typer.Argument(..., help="Batch ID to resume")):
    """Continue a stopped batch (same as run)."""
    _run_command(batch_id)


@app.command()
def retry(
    batch_id: str = typer.Argument(..., help="Batch ID"),
    page: str = typer.Argument(..., help="1-based page number, 'cover', or job ID"),
):
    """Regenerate one failed page immediately."""
    from linework.tools.retry_page import retry_page

    config = _load_config()

    async def _retry():
        store = await _get_store(recover=True)
        client = _make_client(config)
        try:
            return await retry_page(batch_id, page, client=client, store=store, config=config)
        finally:
            await client.close()
            await store.close()

    try:
        job = _run(_retry())
    except (LineworkError, ValueError) as e:
        _fail(e)

    if job.state is JobState.COMPLETED:
        typer.echo(typer.style(f"✓ {job.title}: completed", fg=typer.colors.GREEN))
    else:
        typer.echo(typer.style(f"✗ {job.title}: {job.error}", fg=typer.colors.RED), err=True)
        raise typer.Exit(1)


@app.command("list")
def list_cmd():
    """List all batches."""
    from linework.tools.list_batches import list_batches

    _load_config()

    async def _list():
        store = await _get_store()
        try:
            return await list_batches(store=store)
        finally:
            await store.close()

    result = _run(_list())
    batches = result["batches"]

    if not batches:
        typer.echo("No batches found.")
        return

    typer.echo(f"{'BATCH ID':<14} {'STATUS':<12} {'DONE':<8} TITLE")
    typer.echo("-" * 80)

    for b in batches:
        status = b["status"]
        done = f"{b['completed']}/{b['total']}"
        typer.echo(
            typer.style(f"{b['batch_id']:<14} ", fg=_state_color(status))
            + typer.style(f"{status:<12} ", fg=_state_color(status))
            + f"{done:<8} {b['title']}"
        )


@app.command()
def status(batch_id: str = typer.Argument(..., help="Batch ID to check")):
    """Show per-page status of a batch."""
    from linework.tools.batch_status import batch_status

    _load_config()

    async def _status():
        store = await _get_store()
        try:
            return await batch_status(batch_id, store=store)
        finally:
            await store.close()

    try:
        result = _run(_status())
    except LineworkError as e:
        _fail(e)

    status_value = result["status"]
    typer.echo(f"Batch:    {result['batch_id']}")
    typer.echo(f"Title:    {result['title']}")
    typer.echo(f"Aspect:   {result['aspect_ratio']}")
    typer.echo(typer.style(f"Status:   {status_value}", fg=_state_color(status_value)))
    typer.echo(f"Progress: {result['progress'] * 100:.0f}%")
    typer.echo()
    for job in result["jobs"]:
        label = "cover" if job["kind"] == "cover" else f"{job['position']:>5}"
        line = f"{label}  {job['state']:<11} {job['title']}"
        typer.echo(typer.style(line, fg=_state_color(job["state"])))
        if job.get("saying"):
            typer.echo(typer.style(f"{'':7}\"{job['saying']}\"", dim=True))
        if job.get("error"):
            typer.echo(typer.style(f"{'':7}{job['error']}", fg=typer.colors.RED))
    if result.get("message"):
        typer.echo()
        typer.echo(result["message"])


@app.command()
def export(
    batch_id: str = typer.Argument(..., help="Batch ID to export"),
    out: Path = typer.Option(None, "--out", "-o", help="Output directory"),
    pdf: bool = typer.Option(True, "--pdf/--no-pdf", help="Write the PDF interior"),
    archive: bool = typer.Option(True, "--zip/--no-zip", help="Write the image ZIP"),
):
    """Export completed pages as a PDF interior and an image ZIP."""
    from linework.tools.export_batch import export_batch

    config = _load_config()
    out_dir = out or Path(config.output.exports_dir)

    async def _export():
        store = await _get_store()
        try:
            return await export_batch(batch_id, out_dir, store=store, pdf=pdf, archive=archive)
        finally:
            await store.close()

    try:
        result = _run(_export())
    except LineworkError as e:
        _fail(e)

    if result["document_path"]:
        typer.echo(f"PDF: {result['document_path']}")
    if result["archive_path"]:
        typer.echo(f"ZIP: {result['archive_path']}")
    if result["pages_missing"]:
        typer.echo(
            typer.style(
                f"{result['pages_missing']} page(s) not completed and left out",
                fg=typer.colors.YELLOW,
            ),
            err=True,
        )


if __name__ == "__main__":
    app()
