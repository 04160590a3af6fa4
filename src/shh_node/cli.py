"""CLI entry point for the shh_node relay."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment

from shh_node.config import load_config, validate_config
from shh_node.daemon import run_node
from shh_node.dispatch.gateway import HttpDispatchGateway
from shh_node.errors import ConfigurationError
from shh_node.models.config import NodeConfig
from shh_node.solana.source import SolanaWalletSource
from shh_node.wallet.keys import generate_keypair, keypair_from_secret, secret_to_base64
from shh_node.wallet.pool import WalletPool


def _mask(secret: str) -> str:
    if not secret:
        return "(not set)"
    return f"{secret[:4]}...{secret[-4:]}" if len(secret) > 12 else "***configured***"


def _load_config(ctx: click.Context) -> NodeConfig:
    """Load config, exiting with an error instead of a traceback."""
    try:
        return load_config(ctx.obj["config_path"])
    except (ConfigurationError, ValueError) as exc:
        click.echo("Configuration errors:", err=True)
        click.echo(f"  - {exc}", err=True)
        sys.exit(1)


def _require_keys(cfg: NodeConfig) -> None:
    """Exit with error if signer keys are not configured."""
    if not cfg.node_signer_secret:
        click.echo("Error: No node signer secret configured.", err=True)
        click.echo("Set NODE_SIGNER_SECRET env var or [keys] node_signer_secret in config.", err=True)
        sys.exit(1)
    if not cfg.relay_signers:
        click.echo("Error: No relay signers configured.", err=True)
        click.echo("Set RELAY_SIGNERS to a JSON array of base64 secret keys.", err=True)
        sys.exit(1)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """shh-node - Privacy relay node for the SHH dispatcher."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Node ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the relay node."""
    cfg = _load_config(ctx)
    if not ctx.obj["verbose"]:
        try:
            logging.getLogger().setLevel(cfg.log_level.upper())
        except ValueError:
            click.echo("Configuration errors:", err=True)
            click.echo(f"  - Unknown log level: {cfg.log_level}", err=True)
            sys.exit(1)

    result = validate_config(cfg)
    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)
    if not result.valid:
        click.echo("Configuration errors:", err=True)
        for error in result.errors:
            click.echo(f"  - {error}", err=True)
        sys.exit(1)

    click.echo(f"Starting shh-node {cfg.version} ({cfg.environment})")
    try:
        asyncio.run(run_node(cfg))
    except Exception as exc:
        click.echo(f"Fatal: {exc}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show node configuration."""
    cfg = _load_config(ctx)
    click.echo(f"Environment:  {cfg.environment}")
    click.echo(f"RPC URL:      {cfg.rpc_url}")
    click.echo(f"Dispatcher:   {cfg.dispatcher_url}")
    click.echo(f"USDC mint:    {cfg.usdc_mint}")
    click.echo(f"Concurrency:  {cfg.max_concurrent}")
    click.echo(f"Per-tx limit: {cfg.per_tx_lamports} lamports")
    click.echo(f"Rotation:     {cfg.rotation_strategy.value}")
    click.echo(f"Health port:  {cfg.health_port}")
    click.echo(f"Node signer:  {_mask(cfg.node_signer_secret)}")
    click.echo(f"Relays:       {len(cfg.relay_signers)} configured")


# ── Keys ───────────────────────────────────────────────


@cli.command()
@click.option("--relays", "-n", type=int, default=3, show_default=True, help="Number of relay wallets")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
              help="Write an env file instead of printing")
def keygen(relays: int, output: str | None) -> None:
    """Generate a node identity and relay wallets."""
    if relays < 1:
        click.echo("Error: --relays must be at least 1", err=True)
        sys.exit(1)

    identity = generate_keypair()
    wallets = [generate_keypair() for _ in range(relays)]

    lines = [
        f"# Node identity: {identity.pubkey()}",
        f"NODE_SIGNER_SECRET={secret_to_base64(identity)}",
        "# Relay wallets (fund each with SOL before starting):",
    ]
    lines += [f"#   {i}: {kp.pubkey()}" for i, kp in enumerate(wallets)]
    lines.append(f"RELAY_SIGNERS='{json.dumps([secret_to_base64(kp) for kp in wallets])}'")
    text = "\n".join(lines) + "\n"

    if output:
        with open(output, "w") as f:
            f.write(text)
        click.echo(f"Wrote keys to {output}")
        click.echo(f"Node ID: {identity.pubkey()}")
    else:
        click.echo(text, nl=False)


@cli.command()
@click.pass_context
def wallets(ctx: click.Context) -> None:
    """Show relay wallet balances."""
    cfg = _load_config(ctx)
    _require_keys(cfg)

    async def _wallets():
        client = AsyncClient(cfg.rpc_url, commitment=Commitment(cfg.rpc_commitment))
        try:
            pool = WalletPool.from_secrets(
                cfg.node_signer_secret,
                cfg.relay_signers,
                source=SolanaWalletSource(client, cfg.usdc_mint),
                min_balance_sol=cfg.min_balance_sol,
            )
            click.echo(f"Node ID: {pool.identity_pubkey}")
            for i, wallet in enumerate(await pool.balances()):
                usdc = "n/a" if wallet.balance_usdc is None else f"{wallet.balance_usdc:.6f}"
                marker = "" if wallet.balance_sol >= cfg.min_balance_sol else "  (LOW)"
                click.echo(
                    f"  [{i}] {wallet.public_key}  {wallet.balance_sol:.9f} SOL  "
                    f"{usdc} USDC{marker}"
                )
            await pool.validate_balances()
            click.echo("Relay wallets funded")
        finally:
            await client.close()

    try:
        asyncio.run(_wallets())
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def ping(ctx: click.Context) -> None:
    """Check that the dispatcher is reachable."""
    cfg = _load_config(ctx)
    if not cfg.node_signer_secret:
        _require_keys(cfg)

    async def _ping():
        identity = keypair_from_secret(cfg.node_signer_secret, "NODE_SIGNER_SECRET")
        gateway = HttpDispatchGateway(cfg.dispatcher_url, identity, timeout=cfg.request_timeout)
        await gateway.connect()
        click.echo(f"Dispatcher reachable: {cfg.dispatcher_url}")

    try:
        asyncio.run(_ping())
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
