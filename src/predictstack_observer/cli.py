"""CLI entry point for the predictstack observer."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import sys

import click

from predictstack_observer.chainhook.subscriptions import build_subscriptions
from predictstack_observer.clarity.amounts import format_amount
from predictstack_observer.clarity.decoder import decode_repr
from predictstack_observer.config import ConfigError, load_config, validate_config
from predictstack_observer.daemon import run_daemon
from predictstack_observer.models.config import ObserverConfig, ObserverMode
from predictstack_observer.storage.sqlite import SQLiteEventStore


def _load(ctx: click.Context) -> ObserverConfig:
    """Load config, exiting with status 1 on a configuration error."""
    try:
        return load_config(ctx.obj["config_path"])
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """predictstack-observer - PredictStack contract event ingestion."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Daemon ─────────────────────────────────────────────


@cli.command()
@click.option(
    "--mode", type=click.Choice([m.value for m in ObserverMode]), default=None,
    help="Override the configured ingestion mode",
)
@click.pass_context
def run(ctx: click.Context, mode: str | None) -> None:
    """Start the observer daemon."""
    cfg = _load(ctx)
    if mode is not None:
        cfg = dataclasses.replace(cfg, mode=ObserverMode(mode))
    try:
        validate_config(cfg)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if not ctx.obj["verbose"]:
        logging.getLogger().setLevel(cfg.log_level.upper())

    click.echo(f"Starting predictstack observer (mode: {cfg.mode.value}, network: {cfg.network.value})")
    sys.exit(asyncio.run(run_daemon(cfg)))


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.option("--top", type=int, default=5, help="Number of leaderboard entries to show")
@click.pass_context
def status(ctx: click.Context, top: int) -> None:
    """Show configuration and stored state."""
    cfg = _load(ctx)
    click.echo(f"Mode:       {cfg.mode.value}")
    click.echo(f"Network:    {cfg.network.value}")
    click.echo(f"Market:     {cfg.contracts.market_contract or '(not set)'}")
    click.echo(f"Token:      {cfg.contracts.token_contract}")
    click.echo(f"API URL:    {cfg.api_base_url}")
    click.echo(f"API key:    {'***configured***' if cfg.api_key else '(not set)'}")
    click.echo(f"Node URL:   {cfg.chainhook_node_url or '(not set)'}")
    click.echo(f"Public URL: {cfg.chainhook_public_url or '(not set)'}")
    click.echo(f"DB path:    {cfg.db_path}")

    async def _status():
        store = SQLiteEventStore(cfg.db_path)
        await store.initialize()
        try:
            cursor = await store.get_cursor()
            markets = await store.get_markets()
            open_markets = len([m for m in markets if m.status == "open"])
            click.echo("")
            if cursor is None:
                click.echo("Cursor:     (none)")
            else:
                click.echo(f"Cursor:     block {cursor.block_height}, tx {cursor.tx_index}")
            click.echo(f"Markets:    {len(markets)} ({open_markets} open)")
            leaders = await store.get_leaderboard(top)
            if leaders:
                click.echo("")
                click.echo("Top winners:")
                for i, s in enumerate(leaders, 1):
                    click.echo(
                        f"  {i:2d}. {s.user}  won {format_amount(s.total_won)}"
                        f"  wagered {format_amount(s.total_wagered)}  bets {s.bets}"
                    )
        finally:
            await store.close()

    asyncio.run(_status())


@cli.command()
@click.pass_context
def subscriptions(ctx: click.Context) -> None:
    """List the subscriptions registered in push mode."""
    cfg = _load(ctx)
    for sub in build_subscriptions(cfg.contracts):
        click.echo(
            f"  {sub.uuid}  {sub.condition.scope.value:20s} {sub.label:22s} -> {sub.handler.value}"
        )


@cli.command()
@click.pass_context
def cursor(ctx: click.Context) -> None:
    """Show the poller's persisted cursor."""
    cfg = _load(ctx)

    async def _cursor():
        store = SQLiteEventStore(cfg.db_path)
        await store.initialize()
        try:
            saved = await store.get_cursor()
        finally:
            await store.close()
        if saved is None:
            click.echo("No cursor stored.")
        else:
            click.echo(f"Block {saved.block_height}, tx {saved.tx_index}")

    asyncio.run(_cursor())


@cli.command()
@click.option("-n", "--limit", type=int, default=20, help="Number of entries to show")
@click.pass_context
def activity(ctx: click.Context, limit: int) -> None:
    """Show the most recent activity log entries."""
    cfg = _load(ctx)

    async def _activity():
        store = SQLiteEventStore(cfg.db_path)
        await store.initialize()
        try:
            entries = await store.get_recent_activity(limit)
        finally:
            await store.close()
        if not entries:
            click.echo("No activity recorded.")
            return
        for a in entries:
            tx = f" tx={a.tx_hash[:16]}..." if a.tx_hash else ""
            click.echo(f"  {a.created_at} [{a.event_type}] {a.message}{tx}")

    asyncio.run(_activity())


@cli.command()
@click.argument("repr_text", metavar="REPR")
def decode(repr_text: str) -> None:
    """Decode a Clarity value representation, e.g. '(tuple (event "bet-placed"))'."""
    fields = decode_repr(repr_text)
    if not fields:
        click.echo("Not a decodable tuple.", err=True)
        sys.exit(1)
    click.echo(json.dumps(fields, indent=2))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
