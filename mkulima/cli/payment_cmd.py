"""Payment CLI commands."""
import click

from mkulima.payments.ledger import TransactionNotFound
from mkulima.payments.providers import DEFAULT_PROVIDERS, PaymentError, format_currency

from .output import print_error, print_json, print_success, table


@click.group()
def payment():
    """Mobile money payment commands."""
    pass


@payment.command()
def providers():
    """List supported providers with fees and limits."""
    table(
        ["id", "name", "fee", "limits", "countries"],
        [
            [
                p.name,
                p.display_name,
                f"{p.fee_percent}%" + (f" + {p.fee_fixed:g} {p.currency}" if p.fee_fixed else ""),
                f"{p.min_amount:g} - {p.max_amount:g} {p.currency}",
                ", ".join(p.countries),
            ]
            for p in DEFAULT_PROVIDERS.values()
        ],
    )


@payment.command()
@click.argument('provider')
@click.argument('amount', type=float)
@click.pass_obj
def quote(client, provider: str, amount: float):
    """Show fee and total for AMOUNT through PROVIDER."""
    try:
        p = client.payments.provider(provider)
        fee, total = client.payments.quote(provider, amount)
    except PaymentError as e:
        print_error(str(e))
        raise SystemExit(1)

    print_json({
        "provider": p.name,
        "amount": amount,
        "fee": fee,
        "total": total,
        "currency": p.currency,
        "within_limits": p.accepts(amount),
    })


@payment.command()
@click.argument('provider')
@click.argument('amount', type=float)
@click.option('--phone', required=True, help='Payer phone number')
@click.option('--user', 'user_id', required=True, help='Paying user id')
@click.option('--escrow', is_flag=True, help='Hold funds in escrow until delivery')
@click.option('--description', default='Payment', help='Payment description')
@click.pass_obj
def submit(client, provider: str, amount: float, phone: str, user_id: str,
           escrow: bool, description: str):
    """Validate a payment and queue it for the next sync."""
    try:
        tx = client.payments.submit(user_id, provider, amount, phone,
                                    escrow=escrow, description=description)
    except PaymentError as e:
        print_error(str(e))
        raise SystemExit(1)

    print_success(f"Payment {tx.id} queued: {format_currency(tx.total, tx.currency)}")
    print_json(tx.to_dict())


@payment.command('list')
@click.option('--user', 'user_id', default=None, help='Only this user\'s transactions')
@click.pass_obj
def list_transactions(client, user_id: str | None):
    """List transactions, newest first."""
    txs = client.payments.list_transactions(user_id)
    if not txs:
        click.echo("No transactions")
        return
    table(
        ["id", "status", "total", "escrow", "created"],
        [[t.id, t.status.value, format_currency(t.total, t.currency),
          t.escrow_status.value, t.created_at] for t in txs],
    )


@payment.command()
@click.argument('transaction_id')
@click.pass_obj
def show(client, transaction_id: str):
    """Show one transaction."""
    try:
        print_json(client.payments.get_transaction(transaction_id).to_dict())
    except TransactionNotFound as e:
        print_error(str(e))
        raise SystemExit(1)


@payment.command()
@click.argument('transaction_id')
@click.argument('status', type=click.Choice(["completed", "failed"]))
@click.option('--reason', default=None, help='Failure reason reported by the provider')
@click.pass_obj
def callback(client, transaction_id: str, status: str, reason: str | None):
    """Apply a provider callback to a pending transaction."""
    try:
        tx = client.payments.apply_callback(transaction_id, status, reason)
    except TransactionNotFound as e:
        print_error(str(e))
        raise SystemExit(1)
    print_json(tx.to_dict())
