"""Escrow CLI commands."""
import click

from mkulima.constants import DEFAULT_RELEASE_REASON
from mkulima.payments.escrow import EscrowError
from mkulima.payments.ledger import EscrowStatus

from .output import print_error, print_json, print_success, table


@click.group()
def escrow():
    """Escrow commands."""
    pass


@escrow.command('list')
@click.option('--status', type=click.Choice(["held", "released"]), default=None)
@click.pass_obj
def list_records(client, status: str | None):
    """List escrow records."""
    records = client.escrow.list_records(EscrowStatus(status) if status else None)
    if not records:
        click.echo("No escrow records")
        return
    table(
        ["transaction", "status", "amount", "held", "released"],
        [[r.transaction_id, r.status.value, f"{r.amount:g} {r.currency}",
          r.held_at, r.released_at or ""] for r in records],
    )


@escrow.command()
@click.argument('transaction_id')
@click.option('--reason', default=DEFAULT_RELEASE_REASON, help='Why the funds are released')
@click.pass_obj
def release(client, transaction_id: str, reason: str):
    """Release escrowed funds to the seller."""
    try:
        record = client.release_escrow(transaction_id, reason)
    except EscrowError as e:
        print_error(str(e))
        raise SystemExit(1)

    print_success("Escrow funds released to seller")
    print_json(record.to_dict())
