"""
guestledger sign / guestledger read

Exit codes:
    0  Entry confirmed / ledger read
    1  Entry failed (rejected or timed out)
    2  Error  (bad config, no settlement connection, unreadable ledger)
"""

import json
import sys
from typing import Optional

import click

from guestledger.config import GuestLedgerConfig
from guestledger.core.exceptions import GuestLedgerError
from guestledger.core.models import SubmissionStatus
from guestledger.ledger.ledger import LedgerStore
from guestledger.runtime.context import RuntimeContext


@click.command(name="sign")
@click.argument("author")
@click.argument("body")
@click.option(
    "--timeout",
    type=float,
    default=None,
    metavar="SECONDS",
    help="Settlement timeout (overrides config).",
)
@click.option(
    "--no-wait",
    is_flag=True,
    default=False,
    help="Print the submission id and return without waiting for the outcome.",
)
@click.pass_obj
def sign_command(
    config:  GuestLedgerConfig,
    author:  str,
    body:    str,
    timeout: Optional[float],
    no_wait: bool,
) -> None:
    """
    Sign the guestbook as AUTHOR with message BODY.

    \b
    Examples:
      guestledger sign alice "hi"
      guestledger sign bob "see you" --timeout 5
    """
    try:
        config = config.with_overrides(submission_timeout=timeout)
        runtime = RuntimeContext.from_config(config)
    except (GuestLedgerError, ValueError, RuntimeError) as exc:
        click.echo(f"❌ Error: {exc}", err=True)
        sys.exit(2)

    with runtime:
        try:
            sid = runtime.coordinator.submit(author, body)
        except GuestLedgerError as exc:
            click.echo(f"❌ Error: {exc}", err=True)
            sys.exit(2)

        if no_wait:
            click.echo(sid)
            return

        submission = runtime.coordinator.wait(sid)

    if submission.status is SubmissionStatus.CONFIRMED:
        click.echo(f"✅ Confirmed at index {submission.index}")
        return

    click.echo(f"❌ Failed: {submission.error}", err=True)
    sys.exit(1)


@click.command(name="read")
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
    help="Output format.",
)
@click.pass_obj
def read_command(config: GuestLedgerConfig, fmt: str) -> None:
    """Print every guestbook entry in ledger order."""
    try:
        records = LedgerStore(path=config.ledger_path).records()
    except GuestLedgerError as exc:
        click.echo(f"❌ Error: {exc}", err=True)
        sys.exit(2)

    if fmt == "json":
        click.echo(json.dumps(
            [
                {
                    "index":     r.index,
                    "author":    r.entry.author,
                    "body":      r.entry.body,
                    "timestamp": r.timestamp,
                }
                for r in records
            ],
            indent=2,
            ensure_ascii=False,
        ))
        return

    if not records:
        click.echo("(the guestbook is empty)")
        return

    for r in records:
        click.echo(f"#{r.index:<4} {r.timestamp}  {r.entry.author}: {r.entry.body}")
