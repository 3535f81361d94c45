"""CLI entry point for the njangi_circles resolver."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime, timezone

import click

from njangi_circles.config import load_config
from njangi_circles.engine.monetary import format_native, format_usd
from njangi_circles.engine.projector import CircleProjector
from njangi_circles.engine.schedule import describe_cycle, potential_next_payout
from njangi_circles.exceptions import CircleNotFoundError, ConfigInvariantViolation
from njangi_circles.models.circle import CycleType, ResolvedCircle
from njangi_circles.sui.price import CoinGeckoPriceSource
from njangi_circles.sui.rpc import SuiRpcReader


def _price_source(cfg) -> CoinGeckoPriceSource:
    return CoinGeckoPriceSource(api_url=cfg.price_api_url, cache_ttl=cfg.price_cache_ttl)


def _when(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC") if value else "(not scheduled)"


def _print_circle(snapshot: ResolvedCircle) -> None:
    cfg = snapshot.config
    click.echo(f"Circle:       {cfg.circle_id}")
    click.echo(f"Name:         {cfg.name or '(unnamed)'}")
    click.echo(f"Admin:        {cfg.admin}")
    click.echo(
        f"Contribution: {format_usd(cfg.contribution_amount_usd)} "
        f"({format_native(cfg.contribution_amount_native, 'SUI')})"
    )
    click.echo(
        f"Deposit:      {format_usd(cfg.security_deposit_usd)} "
        f"({format_native(cfg.security_deposit_native, 'SUI')})"
    )
    if cfg.cycle_day_valid:
        click.echo(f"Cycle:        {describe_cycle(cfg.cycle_type, cfg.cycle_day)}")
    else:
        click.echo(f"Cycle:        {cfg.cycle_type.value} (invalid day {cfg.cycle_day})")
    click.echo(
        f"Members:      {snapshot.current_members}/{cfg.max_members} "
        f"({snapshot.membership.status.value})"
    )
    click.echo(f"Rotation:     {cfg.rotation_style.value}")
    click.echo(f"Active:       {cfg.is_active}")
    if cfg.is_active:
        click.echo(f"Next payout:  {_when(cfg.next_payout_at)}")
    else:
        click.echo(f"First payout: {_when(snapshot.potential_next_payout_at)} (once activated)")
    click.echo(f"Custody:      {snapshot.custody_wallet_id or '(none)'}")
    price = snapshot.price
    price_text = f"${price.value:.4f}" if price.usable else "(unavailable)"
    click.echo(f"SUI price:    {price_text} [{price.status.value}]")

    if snapshot.deposit is not None:
        dep = snapshot.deposit
        verdict = f"paid ({dep.method.value})" if dep.paid else "not paid"
        if dep.incomplete:
            verdict += " [check incomplete]"
        click.echo(f"Deposit of {dep.address[:16]}...: {verdict}")

    if cfg.defaulted:
        click.echo(f"Defaulted:    {', '.join(sorted(cfg.defaulted))}")
    if snapshot.flags:
        click.echo(f"Flags:        {', '.join(sorted(f.value for f in snapshot.flags))}")


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """njangi-circles - Resolve savings-circle state from the Sui ledger."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    cfg = load_config(config_path)
    level = logging.DEBUG if verbose else getattr(logging, cfg.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show resolver configuration."""
    cfg = load_config(ctx.obj["config_path"])
    click.echo(f"Network:    {cfg.network}")
    click.echo(f"RPC URL:    {cfg.rpc_url}")
    click.echo(f"Package:    {cfg.package_id}")
    click.echo(f"Module:     {cfg.module}")
    click.echo(f"Events:     {cfg.event_page_size}/page, max {cfg.max_event_pages} pages")
    click.echo(f"Price API:  {cfg.price_api_url}")
    click.echo(f"Price TTL:  {cfg.price_cache_ttl}s")


@cli.command()
@click.pass_context
def price(ctx: click.Context) -> None:
    """Fetch the current SUI/USD price."""
    cfg = load_config(ctx.obj["config_path"])
    quote = asyncio.run(_price_source(cfg).get_price())
    if not quote.usable:
        click.echo("SUI price unavailable.", err=True)
        sys.exit(1)
    click.echo(f"SUI price:  ${quote.value:.4f} [{quote.status.value}]")


# ── Resolution ─────────────────────────────────────────


@cli.command()
@click.argument("circle_id")
@click.option("--member", "member_address", default=None, help="Also check this member's deposit")
@click.option("--json", "as_json", is_flag=True, help="Print the snapshot as JSON")
@click.pass_context
def resolve(ctx: click.Context, circle_id: str, member_address: str | None, as_json: bool) -> None:
    """Resolve a circle's configuration, membership and schedule."""
    cfg = load_config(ctx.obj["config_path"])

    async def _resolve() -> ResolvedCircle:
        reader = SuiRpcReader(cfg.rpc_url, timeout=cfg.request_timeout)
        try:
            projector = CircleProjector(reader, _price_source(cfg), cfg)
            return await projector.project(circle_id, member_address=member_address)
        finally:
            await reader.close()

    try:
        snapshot = asyncio.run(_resolve())
    except CircleNotFoundError as exc:
        click.echo(f"Circle not found: {exc}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(snapshot.to_dict(), indent=2))
    else:
        _print_circle(snapshot)


@cli.command()
@click.argument("cycle_type", type=click.Choice([c.value for c in CycleType]))
@click.argument("cycle_day", type=int)
@click.option("--from", "from_", default=None, help="ISO 8601 start instant (default: now, UTC)")
def schedule(cycle_type: str, cycle_day: int, from_: str | None) -> None:
    """Compute the next payout for a cycle type and day."""
    start = datetime.fromisoformat(from_) if from_ else datetime.now(timezone.utc)
    try:
        instant = potential_next_payout(cycle_type, cycle_day, start)
    except ConfigInvariantViolation as exc:
        click.echo(f"Invalid cycle: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Cycle:        {describe_cycle(cycle_type, cycle_day)}")
    click.echo(f"Next payout:  {instant.isoformat()}")
