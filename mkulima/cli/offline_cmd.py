"""Offline queue CLI commands."""
import asyncio
import json

import click

from mkulima.core.receipt import StopRule
from mkulima.offline.actions import ActionKind

from .output import print_error, print_json, print_success, table

# Payments are queued by `mkulima payment submit`, which validates first
KIND_CHOICES = [k.value for k in ActionKind if k is not ActionKind.PAYMENT_SUBMIT]


@click.group()
def offline():
    """Offline queue commands."""
    pass


@offline.command()
@click.pass_obj
def status(client):
    """Show offline queue status."""
    print_json(client.status())


@offline.command('queue')
@click.option('--limit', '-n', default=10, help='Number of actions to show')
@click.pass_obj
def show_queue(client, limit: int):
    """List pending actions, oldest first."""
    actions = client.queue.peek(limit)
    if not actions:
        click.echo("Queue is empty")
        return

    click.echo(f"Showing {len(actions)} of {client.queue.size()} pending actions:\n")
    table(
        ["id", "kind", "enqueued", "attempts", "last error"],
        [[a.id, a.kind.value, a.enqueued_at, a.attempts, a.last_error or ""] for a in actions],
    )


@offline.command()
@click.argument('kind', type=click.Choice(KIND_CHOICES))
@click.option('--payload', '-p', default='{}', help='Action payload as a JSON object')
@click.pass_obj
def enqueue(client, kind: str, payload: str):
    """Queue an action for the next sync."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"payload is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise click.BadParameter("payload must be a JSON object")

    action_id = client.enqueue(kind, data)
    print_success(f"Action saved for offline sync: {action_id}")


async def _probe_and_sync(client, force: bool):
    """Probe connectivity, then drain. Returns None when offline."""
    summary = await client.monitor.poll()
    if summary is not None:
        return summary
    if not client.monitor.is_online and not force:
        return None
    return await client.sync()


@offline.command('sync')
@click.option('--force', is_flag=True, help='Sync even if the probe reports offline')
@click.pass_obj
def do_sync(client, force: bool):
    """Deliver pending actions to the backend."""
    try:
        summary = asyncio.run(_probe_and_sync(client, force))
    except StopRule as e:
        print_error(str(e))
        raise SystemExit(2)

    if summary is None:
        print_error("Not connected. Use --force to attempt anyway.")
        raise SystemExit(1)

    if summary.failed_count:
        print_error(f"{summary.failed_count} items failed to sync")
    print_success(f"Synced {summary.succeeded_count} items successfully")
    print_json(summary.to_dict())


@offline.command()
@click.option('--interval', type=float, default=None,
              help='Seconds between probes (default: MKULIMA_CHECK_INTERVAL)')
@click.option('--count', '-c', type=int, default=None, help='Stop after this many probes')
@click.pass_obj
def watch(client, interval: float | None, count: int | None):
    """Probe connectivity and sync whenever the backend comes back."""
    client.monitor.on_change(
        lambda online: click.echo("Online" if online else "Offline")
    )
    try:
        checks = asyncio.run(client.watch(interval, max_checks=count))
    except KeyboardInterrupt:
        client.monitor.stop()
        click.echo("Stopped")
        return

    summary = client.engine.last_summary
    if summary is not None:
        print_success(f"Synced {summary.succeeded_count} items successfully")
    click.echo(f"{checks} checks, {client.queue.size()} pending")


@offline.command('dead-letters')
@click.pass_obj
def dead_letters(client):
    """List actions moved out of the queue after too many attempts."""
    records = client.queue.list_dead_letters()
    if not records:
        click.echo("No dead-lettered actions")
        return
    print_json(records)


@offline.command()
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@click.pass_obj
def clear(client, yes: bool):
    """Drop every pending action."""
    size = client.queue.size()
    if size == 0:
        click.echo("Queue already empty")
        return

    if yes or click.confirm(f"Clear {size} pending actions?"):
        client.queue.clear()
        print_success("Queue cleared")
