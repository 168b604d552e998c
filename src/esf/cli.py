"""Submit one search from the command line and watch it to the end."""
from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional

from rich.console import Console
from rich.table import Table

from esf.adapters.aiohttp_client_adapter import AioHttpClientAdapter
from esf.core.logging_config import configure_logging, correlation_id_var
from esf.core.models.job import Job, JobPhase
from esf.core.models.query import Database, SearchMode, SearchQuery
from esf.core.settings import app_settings
from esf.main import build_tracker

console = Console()


class ConsoleObserver:
    """Prints job transitions as they happen."""

    async def on_job_submitted(self, job: Job) -> None:
        console.print(f"[bold]Submitted[/bold] job {job.id}")

    async def on_phase_changed(self, job: Job, old_phase: JobPhase, new_phase: JobPhase) -> None:
        if new_phase == JobPhase.in_flight and job.degraded:
            console.print(f"[yellow]{job.error_message}[/yellow]")
        elif new_phase != JobPhase.reconciling:
            console.print(f"{old_phase} -> {new_phase}")

    async def on_status_label_changed(self, job: Job, old_label: str, new_label: str) -> None:
        console.print(f"status: {new_label} (after {job.elapsed_ticks} polls)")

    async def on_job_finished(self, job: Job) -> None:
        pass


def render_job(job: Job) -> None:
    if job.phase == JobPhase.failed:
        console.print(f"[red]Search failed:[/red] {job.error_message}")
        return
    if job.result is None:
        console.print(f"Search ended in phase {job.phase}")
        return

    result = job.result
    console.print(f"[green]Completed[/green] after {job.elapsed_ticks} polls")
    console.print(result.summary_text)
    console.print(f"Tree: {result.tree_resource_ref}")
    console.print(f"Full result: {result.full_result_ref}")
    if result.top_hits:
        table = Table(title="Top hits")
        table.add_column("#", justify="right")
        table.add_column("Title")
        table.add_column("Publication")
        for rank, hit in enumerate(result.top_hits, start=1):
            table.add_row(str(rank), hit.title, hit.publication_link)
        console.print(table)


async def run_search(query: SearchQuery, timeout: Optional[float]) -> Job:
    http_client = AioHttpClientAdapter(default_total=app_settings.ESF_REQUEST_TIMEOUT)
    async with http_client as client:
        tracker = build_tracker(client, observers=[ConsoleObserver()])
        try:
            job = await tracker.submit(query)
            correlation_id_var.set(job.id[:12])
            job = await tracker.wait_until_finished(timeout)
            await tracker.drain()
            return job
        finally:
            await tracker.shutdown()


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Find the likely environmental source of a sequence with a remote BLAST search.")
    p.add_argument("sequence", help="FASTA sequence, or '-' to read it from stdin")
    p.add_argument("--search-mode", default=SearchMode.blastn.value, choices=[m.value for m in SearchMode])
    p.add_argument("--database", default=Database.nt.value, choices=[d.value for d in Database])
    p.add_argument("--timeout", type=float, default=None, help="Seconds to wait before giving up locally")
    args = p.parse_args(argv)

    configure_logging(app_settings.ESF_LOG_LEVEL, split_streams=False)

    sequence = sys.stdin.read().strip() if args.sequence == "-" else args.sequence
    query = SearchQuery(
        sequence=sequence,
        search_mode=SearchMode(args.search_mode),
        database=Database(args.database),
    )
    try:
        job = asyncio.run(run_search(query, args.timeout))
    except asyncio.TimeoutError:
        console.print("[red]Gave up waiting for the search to finish[/red]")
        return 2

    render_job(job)
    return 0 if job.phase == JobPhase.completed else 1


if __name__ == "__main__":
    sys.exit(main())
