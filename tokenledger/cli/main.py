# tokenledger/cli/main.py
"""
CLI for inspecting, verifying and exporting asset-ledger journals.
"""

import os
import json
import sqlite3
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tokenledger.core.encoding import format_units
from tokenledger.core.types import Checkpoint, Proof
from tokenledger.storage import DB_PATH_ENV, SQLiteStorage
from tokenledger.verify.verifier import JournalVerifier, replay

app = typer.Typer(
    name="tokenledger",
    help="Inspect, verify and export asset-ledger journals",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def get_db_path(db_flag: Optional[Path] = None) -> Path:
    """Resolve DB path in this order:
    1. --db flag
    2. TOKENLEDGER_DB_PATH environment variable
    3. Default: ~/.tokenledger/journal.db
    """
    if db_flag:
        path = db_flag.resolve()
    else:
        env_path = os.environ.get(DB_PATH_ENV)
        if env_path:
            path = Path(env_path).resolve()
        else:
            path = Path.home() / ".tokenledger" / "journal.db"

    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def open_storage(db: Optional[Path], ctx: typer.Context) -> SQLiteStorage:
    """Open the journal database or exit with a hint."""
    db_path = get_db_path(db or (ctx.obj if isinstance(ctx.obj, Path) else None))

    if not db_path.exists():
        console.print(f"[red]Database file not found: {db_path}[/]")
        console.print("[yellow]To get started:[/]")
        console.print("  • Record a ledger journal with storage attached first")
        console.print(f"  • Set env var: export {DB_PATH_ENV}=/path/to/journal.db")
        console.print("  • Or use --db: tokenledger ledgers --db /custom/path.db")
        raise typer.Exit(1)

    try:
        return SQLiteStorage(db_path)
    except Exception as e:
        console.print(f"[red]Failed to open database: {str(e)}[/]")
        console.print("[yellow]The file may be corrupted or not a valid SQLite DB.[/]")
        raise typer.Exit(1)


def load_checkpoint(path: Path) -> Checkpoint:
    data = json.loads(path.read_text(encoding="utf-8"))
    proof = data.get("proof") or None
    return Checkpoint(
        ledger_id=data["ledger_id"],
        sequence=int(data["sequence"]),
        head_hash=data["head_hash"],
        proof=Proof(**proof) if proof else None,
    )


@app.callback()
def main(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(
        None,
        "--db",
        help=f"Path to SQLite database (overrides {DB_PATH_ENV} env var)",
    ),
):
    """Manage asset-ledger journals."""
    ctx.obj = db


@app.command()
def ledgers(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """List all recorded ledgers with entry counts and head sequence."""
    storage = open_storage(db, ctx)

    try:
        ledger_ids = storage.list_ledgers()
    except sqlite3.OperationalError as e:
        console.print(f"[yellow]Database is empty or schema missing: {str(e)}[/]")
        raise typer.Exit(0)

    if not ledger_ids:
        console.print("[yellow]No ledgers found in database.[/]")
        console.print("  (DB exists but no journal entries yet)")
        return

    table = Table(title="Recorded Ledgers")
    table.add_column("Ledger ID")
    table.add_column("Entries")
    table.add_column("Head Sequence")

    for lid in ledger_ids:
        count = storage.get_entry_count(lid)
        head = storage.get_latest_sequence(lid)
        table.add_row(lid, str(count), "—" if head is None else str(head))

    console.print(table)


@app.command()
def events(
    ctx: typer.Context,
    ledger_id: str = typer.Argument(..., help="Ledger ID to display"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of recent entries to show"),
):
    """Show the most recent notifications recorded for a ledger."""
    storage = open_storage(db, ctx)

    try:
        entries = storage.query_entries(ledger_id, limit=limit)
    except sqlite3.OperationalError as e:
        console.print(f"[yellow]Database is empty or schema missing: {str(e)}[/]")
        raise typer.Exit(0)

    if not entries:
        console.print(f"[yellow]No entries found for ledger '{ledger_id}'[/]")
        return

    for entry in entries:
        console.print(f"[bold cyan]{entry.sequence:5d} | {entry.kind:20} | {entry.operation:20} | {entry.caller}[/]")
        details = ", ".join(f"{k}={v}" for k, v in sorted(entry.payload.items()))
        console.print(f"  {details}")


@app.command()
def balances(
    ctx: typer.Context,
    ledger_id: str = typer.Argument(..., help="Ledger ID to replay"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Replay a ledger's journal and show the resulting balances."""
    storage = open_storage(db, ctx)

    try:
        entries = storage.load_entries(ledger_id)
    except Exception as e:
        console.print(f"[red]Failed to load ledger '{ledger_id}': {str(e)}[/]")
        raise typer.Exit(1)

    if not entries:
        console.print(f"[yellow]No entries found for ledger '{ledger_id}'[/]")
        raise typer.Exit(0)

    snapshot = replay(entries)

    table = Table(title=f"Balances of {ledger_id}")
    table.add_column("Principal")
    table.add_column("Balance", justify="right")
    for principal, amount in snapshot.balances.items():
        table.add_row(principal, format_units(amount))

    console.print(table)
    console.print(f"Total supply: {format_units(snapshot.total_supply)}")
    console.print(f"Owner: {snapshot.owner or '—'}   Paused: {'yes' if snapshot.paused else 'no'}")


@app.command()
def verify(
    ctx: typer.Context,
    ledger_id: str = typer.Argument(..., help="Ledger ID to verify"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    pubkey: Optional[str] = typer.Option(None, "--pubkey", help="base64url Ed25519 key of the checkpoint signer"),
    checkpoint: Optional[Path] = typer.Option(None, "--checkpoint", help="Signed checkpoint JSON file"),
):
    """Verify the integrity of a ledger journal (hash chain + invariants, optional checkpoint)."""
    storage = open_storage(db, ctx)

    trusted_keys = {ledger_id: pubkey} if pubkey else {}
    verifier = JournalVerifier(trusted_keys=trusted_keys)

    try:
        chain = storage.load_entries(ledger_id)
    except Exception as e:
        console.print(f"[red]Failed to load ledger '{ledger_id}': {str(e)}[/]")
        raise typer.Exit(1)

    if not chain:
        console.print(f"[red]✗ Verification failed for ledger '{ledger_id}'[/]")
        console.print("  No entries recorded")
        raise typer.Exit(1)

    result = verifier.verify(chain)

    if result.is_valid and checkpoint is not None:
        if not trusted_keys:
            console.print("[yellow]Warning: No trusted public key given, checkpoint check skipped.[/]")
        else:
            try:
                cp = load_checkpoint(checkpoint)
            except (OSError, ValueError, KeyError, TypeError) as e:
                console.print(f"[red]Could not read checkpoint: {str(e)}[/]")
                raise typer.Exit(1)
            result = verifier.verify_checkpoint(chain, cp)

    if result.is_valid:
        console.print(f"[green]✓ Ledger '{ledger_id}' is valid[/]")
        console.print(f"  {result.message}")
    else:
        console.print(f"[red]✗ Verification failed for ledger '{ledger_id}'[/]")
        console.print(f"  {result.message}")
        for failure in result.failures:
            console.print(f"  • [{failure.index}] {failure.category}: {failure.message}")
        raise typer.Exit(1)


@app.command()
def export(
    ctx: typer.Context,
    ledger_id: str = typer.Argument(..., help="Ledger ID to export"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default: <ledger_id>.jsonl)"),
):
    """Export a ledger journal as JSONL (one entry per line)."""
    storage = open_storage(db, ctx)

    try:
        entries = storage.load_entries(ledger_id)
    except Exception as e:
        console.print(f"[red]Failed to load ledger '{ledger_id}': {str(e)}[/]")
        raise typer.Exit(1)

    if not entries:
        console.print(f"[yellow]No entries found for ledger '{ledger_id}'[/]")
        raise typer.Exit(0)

    out_path = output or Path(f"{ledger_id}.jsonl")
    with open(out_path, "w", encoding="utf-8") as f:
        for entry in entries:
            json.dump(entry.to_dict(), f, separators=(",", ":"))
            f.write("\n")

    console.print(f"[green]Exported {len(entries)} entries to {out_path}[/]")
    console.print("Format: JSONL, one chained journal entry per line")


if __name__ == "__main__":
    app()
