"""CLI for PlacementSync.

Commands:
    init-db                              - Create database tables
    capture <path>                       - Capture snapshots from a JSON file
    combine <combined_id> <path>         - Register the constituents of a combined placement
    transfer <config> [ids...]           - Transfer attributes onto placements
    reset [ids...]                       - Clear transferred attributes
    show-snapshot <placement_id>         - Show the snapshot a placement resolves to
    index-stats                          - Show snapshot index statistics
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from placement_sync.config import settings
from placement_sync.db import init_db, session_factory
from placement_sync.diagnostics import configure_transfer_log, remove_transfer_log
from placement_sync.errors import StoreUnavailable
from placement_sync.models import PlacementElement, WriteOutcome
from placement_sync.resolution.attribute_resolver import resolve_snapshot
from placement_sync.services import (
    CapturePolicy,
    ConstituentSpec,
    SnapshotCapture,
    SnapshotCaptureService,
)
from placement_sync.snapshots import AttributeBag, SnapshotRepository
from placement_sync.targets import SqlTargetDocument
from placement_sync.transfer import (
    ExecutionDispatcher,
    TransferConfiguration,
    TransferResult,
    reset_attributes,
)

app = typer.Typer(
    name="placement-sync",
    help="PlacementSync — snapshot-based attribute propagation for placement objects",
    no_args_is_help=True,
)
console = Console()


def _read_json(path: Path) -> object:
    if not path.exists():
        console.print(f"[red]Error:[/red] File does not exist: {path}")
        raise typer.Exit(1)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] Invalid JSON in {path}: {e}")
        raise typer.Exit(1) from None


def _all_placement_ids(session) -> list[int]:
    stmt = select(PlacementElement.element_id).order_by(PlacementElement.element_id)
    return list(session.execute(stmt).scalars())


def _print_result(result: TransferResult, verbose: bool) -> None:
    style = "green" if result.success else "red"
    console.print(f"[{style}]{result.message}[/{style}]")

    if verbose and result.outcomes:
        table = Table(title="Outcomes")
        table.add_column("Placement", justify="right")
        table.add_column("Attribute", style="cyan")
        table.add_column("Outcome")
        table.add_column("Value")
        outcome_style = {
            WriteOutcome.WRITTEN: "green",
            WriteOutcome.SKIPPED: "dim",
            WriteOutcome.MISSING_VALUE: "yellow",
            WriteOutcome.WARNING: "yellow",
            WriteOutcome.FAILED: "red",
        }
        for outcome in result.outcomes:
            s = outcome_style.get(outcome.outcome, "white")
            value = outcome.value or "-"
            table.add_row(
                str(outcome.target_id),
                outcome.target_attribute,
                f"[{s}]{outcome.outcome.value}[/{s}]",
                value[:40] + "..." if len(value) > 40 else value,
            )
        console.print(table)

    for warning in result.warnings[:20]:
        console.print(f"  [yellow]warning:[/yellow] {warning}")
    if len(result.warnings) > 20:
        console.print(f"  [dim]... {len(result.warnings) - 20} more warnings[/dim]")
    for error in result.errors:
        console.print(f"  [red]error:[/red] {error}")


def _bag_table(title: str, bag: AttributeBag) -> Table:
    table = Table(title=title)
    table.add_column("Attribute", style="cyan")
    table.add_column("Value")
    for name in sorted(bag, key=str.casefold):
        value = bag[name]
        table.add_row(name, value[:60] + "..." if len(value) > 60 else value)
    return table


@app.command("init-db")
def init_db_command() -> None:
    """Create database tables."""
    init_db()
    console.print(f"[green]Database initialized:[/green] {settings.database_url}")


@app.command()
def capture(
    path: Annotated[Path, typer.Argument(help="JSON file with one snapshot or a list of them")],
    whitelist: Annotated[
        list[str] | None,
        typer.Option("--whitelist", "-w", help="Extra attribute names to capture"),
    ] = None,
) -> None:
    """Capture placement snapshots, superseding earlier ones."""
    raw = _read_json(path)
    items = raw if isinstance(raw, list) else [raw]
    try:
        payloads = TypeAdapter(list[SnapshotCapture]).validate_python(items)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid snapshot payload:\n{e}")
        raise typer.Exit(1) from None

    init_db()
    with session_factory() as session, session.begin():
        service = SnapshotCaptureService(session, CapturePolicy(whitelist or ()))
        snapshots = service.capture_many(payloads)
        for snapshot in snapshots:
            key = snapshot.cluster_id if snapshot.individual_id is None else snapshot.individual_id
            console.print(
                f"  [green]OK[/green] {snapshot.source_type.value} {key} → "
                f"snapshot {snapshot.snapshot_id} "
                f"({len(snapshot.source_attributes)} source, "
                f"{len(snapshot.context_attributes)} context attributes)"
            )

    console.print(f"\n[bold]Summary:[/bold] {len(payloads)} snapshot(s) captured")


@app.command()
def combine(
    combined_id: Annotated[int, typer.Argument(help="Placement id of the combined target")],
    path: Annotated[Path, typer.Argument(help="JSON list of constituent references")],
) -> None:
    """Register the ordered constituents of a combined placement."""
    raw = _read_json(path)
    try:
        constituents = TypeAdapter(list[ConstituentSpec]).validate_python(raw)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid constituent list:\n{e}")
        raise typer.Exit(1) from None

    init_db()
    with session_factory() as session, session.begin():
        SnapshotCaptureService(session).register_combined(combined_id, constituents)

    console.print(
        f"[green]Registered[/green] combined placement {combined_id} "
        f"with {len(constituents)} constituent(s)"
    )


@app.command()
def transfer(
    config_path: Annotated[Path, typer.Argument(help="Transfer configuration JSON")],
    placement_ids: Annotated[
        list[int] | None, typer.Argument(help="Placement ids (default: all placements)")
    ] = None,
    legacy: Annotated[
        bool, typer.Option("--legacy", help="Use the legacy (mapping-outer) strategy")
    ] = False,
    log_path: Annotated[
        Path | None, typer.Option("--log", help="Append-only diagnostics log file")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show every outcome")] = False,
) -> None:
    """Transfer snapshot attributes onto placements."""
    if not config_path.exists():
        console.print(f"[red]Error:[/red] File does not exist: {config_path}")
        raise typer.Exit(1)
    try:
        configuration = TransferConfiguration.load(config_path)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid transfer configuration:\n{e}")
        raise typer.Exit(1) from None

    handler = configure_transfer_log(log_path or settings.transfer_log_path)
    try:
        init_db()
        dispatcher = ExecutionDispatcher(use_optimized=False if legacy else None)
        with session_factory() as session, session.begin():
            ids = placement_ids or _all_placement_ids(session)
            console.print(
                f"[blue]Transferring {len(configuration.enabled_mappings)} mapping(s) "
                f"onto {len(ids)} placement(s) ({dispatcher.strategy.value})...[/blue]\n"
            )
            result = dispatcher.run_transfer(
                SqlTargetDocument(session),
                ids,
                configuration.mappings,
                index_loader=SnapshotRepository(session).load_index,
            )
    except SQLAlchemyError as e:
        console.print(f"[red]Error:[/red] Database unavailable: {e}")
        raise typer.Exit(1) from None
    finally:
        remove_transfer_log(handler)

    _print_result(result, verbose)
    if not result.success:
        raise typer.Exit(1)


@app.command()
def reset(
    placement_ids: Annotated[list[int], typer.Argument(help="Placement ids to reset")],
) -> None:
    """Clear transferred attributes on the given placements."""
    init_db()
    with session_factory() as session, session.begin():
        visited = reset_attributes(SqlTargetDocument(session), placement_ids)
    console.print(f"[green]Reset[/green] {visited} of {len(placement_ids)} placement(s)")


@app.command("show-snapshot")
def show_snapshot(
    placement_id: Annotated[int, typer.Argument(help="Placement id")],
    separator: Annotated[str, typer.Option(help="Separator for combined values")] = ";",
) -> None:
    """Show the snapshot a placement resolves to."""
    init_db()
    with session_factory() as session:
        try:
            index = SnapshotRepository(session).load_index()
        except StoreUnavailable as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from None

        target = SqlTargetDocument(session).get_target(placement_id)
        if target is None:
            console.print(f"[red]Error:[/red] Placement not found: {placement_id}")
            raise typer.Exit(1)

        resolution = resolve_snapshot(target, index, separator)
        if resolution is None:
            console.print(f"[yellow]No snapshot resolves for placement {placement_id}[/yellow]")
            raise typer.Exit(1)

        snapshot = resolution.snapshot
        panel_content = []
        panel_content.append(f"[bold]Placement:[/bold] {placement_id}")
        panel_content.append(f"[bold]Category:[/bold] {target.category or '-'}")
        panel_content.append(f"[bold]Resolved Via:[/bold] {resolution.path.value}")
        panel_content.append(f"[bold]Snapshot ID:[/bold] {snapshot.snapshot_id}")
        panel_content.append(f"[bold]Source Type:[/bold] {snapshot.source_type.value}")
        if snapshot.stable_id:
            panel_content.append(f"[bold]Stable ID:[/bold] {snapshot.stable_id}")
        console.print(Panel("\n".join(panel_content), title="Snapshot"))

        if snapshot.source_bag:
            console.print(_bag_table("Source Attributes", snapshot.source_bag))
        if snapshot.context_bag:
            console.print(_bag_table("Context Attributes", snapshot.context_bag))


@app.command("index-stats")
def index_stats() -> None:
    """Show how many snapshots each resolution path can reach."""
    init_db()
    with session_factory() as session:
        try:
            index = SnapshotRepository(session).load_index()
        except StoreUnavailable as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from None

    table = Table(title="Snapshot Index")
    table.add_column("Path", style="cyan")
    table.add_column("Entries", justify="right")
    for path, count in index.stats().items():
        table.add_row(path, str(count))
    console.print(table)

    if index.is_empty:
        console.print("[yellow]No snapshots captured yet.[/yellow]")


if __name__ == "__main__":
    app()
