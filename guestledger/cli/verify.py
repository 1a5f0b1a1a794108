"""
guestledger/cli/verify.py

guestledger verify: ledger integrity check.

Usage:
    guestledger verify                       Verify the configured ledger
    guestledger verify <ledger>              Verify a specific file
    guestledger verify <ledger> --format json
    guestledger verify <ledger> --quiet      Exit code only

Exit codes:
    0  Ledger valid  (indices + chain + signatures)
    1  Ledger has violations
    2  Error  (file missing, malformed JSON)
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from guestledger.config import GuestLedgerConfig
from guestledger.core.exceptions import GuestLedgerError
from guestledger.ledger.ledger import LedgerStore, LedgerVerification


# ── ANSI color ────────────────────────────────────────────────────────────────

class _Color:
    """
    Minimal ANSI color wrapper.
    Auto-disables when not a TTY or --no-color is passed.
    """
    _on: bool = True

    @classmethod
    def configure(cls, enabled: bool) -> None:
        cls._on = enabled and sys.stdout.isatty()

    @classmethod
    def green(cls, s: str) -> str:
        return f"\033[32m{s}\033[0m" if cls._on else s

    @classmethod
    def red(cls, s: str) -> str:
        return f"\033[31m{s}\033[0m" if cls._on else s

    @classmethod
    def dim(cls, s: str) -> str:
        return f"\033[2m{s}\033[0m" if cls._on else s


def _row_info(label: str, value: str) -> str:
    return f"  {_Color.dim(f'{label:<16}')}  {value}"


# ── CLI command ───────────────────────────────────────────────────────────────

@click.command(name="verify")
@click.argument("ledger", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
    help="Output format: human (default) or json (CI/automation).",
)
@click.option(
    "--quiet",
    is_flag=True,
    default=False,
    help="Suppress all output. Use exit code only (0=valid, 1=invalid, 2=error).",
)
@click.option("--no-color", is_flag=True, default=False, help="Disable ANSI color output.")
@click.pass_obj
def verify_command(
    config:   GuestLedgerConfig,
    ledger:   Optional[Path],
    fmt:      str,
    quiet:    bool,
    no_color: bool,
) -> None:
    """
    Verify a guestbook ledger: index continuity, hash chain, signatures.

    LEDGER defaults to the configured ledger path.
    """
    _Color.configure(not no_color)
    ledger_path = ledger or config.ledger_path

    if not ledger_path.exists():
        _emit_error(f"Ledger not found: {ledger_path}", fmt, quiet)
        sys.exit(2)

    try:
        result = LedgerStore(path=ledger_path).verify()
    except GuestLedgerError as exc:
        _emit_error(str(exc), fmt, quiet)
        sys.exit(2)

    if quiet:
        sys.exit(0 if result.valid else 1)

    if fmt == "json":
        out = result.to_dict()
        out["ledger"] = str(ledger_path)
        click.echo(json.dumps({"guestledger_verify": out}, indent=2))
    else:
        _output_human(result, ledger_path)

    sys.exit(0 if result.valid else 1)


def _output_human(result: LedgerVerification, ledger_path: Path) -> None:
    bar = "─" * 60
    click.echo()
    click.echo(_row_info("Ledger", str(ledger_path)))
    click.echo(_row_info("Entries", f"{result.total_entries:,}"))
    click.echo(_row_info("Signed", f"{result.signed_entries:,}"))
    click.echo()

    for violation in result.violations:
        click.echo(f"  {_Color.red('✗')} {violation}")

    click.echo(f"  {bar}")
    if result.valid:
        click.echo(_Color.green("  ✅  VALID  ·  0 violations"))
    else:
        click.echo(_Color.red(
            f"  ❌  INVALID  ·  {len(result.violations)} violation(s)"
        ))
    click.echo(f"  {bar}")


def _emit_error(msg: str, fmt: str, quiet: bool) -> None:
    """Emit error in the requested format. Never raises."""
    if quiet:
        return
    if fmt == "json":
        click.echo(json.dumps({
            "guestledger_verify": {"error": msg, "valid": False}
        }))
    else:
        click.echo(_Color.red(f"\n  ❌  ERROR: {msg}\n"), err=True)
