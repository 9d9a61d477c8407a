"""Mkulima CLI entry point - assembles all command groups."""
import logging
from pathlib import Path

import click

from mkulima.client import MkulimaClient
from mkulima.config import MkulimaConfig
from mkulima.core.receipt import set_receipt_sink

from . import __version__
from .escrow_cmd import escrow
from .offline_cmd import offline
from .payment_cmd import payment


@click.group()
@click.version_option(version=__version__)
@click.option('--data-dir', type=click.Path(file_okay=False, path_type=Path),
              help='Directory holding the queue, ledger and escrow logs')
@click.option('--receipts', is_flag=True, help='Print a JSON receipt for every state change')
@click.option('--verbose', '-v', is_flag=True, help='Log at INFO level')
@click.pass_context
def cli(ctx, data_dir: Path | None, receipts: bool, verbose: bool):
    """Mkulima: offline queue, sync and escrow for Mkulima Connect."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    if not receipts:
        set_receipt_sink(None)

    config = MkulimaConfig.from_env()
    if data_dir is not None:
        config.data_dir = data_dir
    ctx.obj = MkulimaClient(config)


cli.add_command(offline)
cli.add_command(payment)
cli.add_command(escrow)


if __name__ == "__main__":
    cli()
