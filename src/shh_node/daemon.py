"""Relay node daemon - wires all components together."""

from __future__ import annotations

import asyncio
import logging
import signal

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment

from shh_node.dispatch.gateway import HttpDispatchGateway
from shh_node.dispatch.subscription import OfferSubscription
from shh_node.execution.engine import ExecutionEngine
from shh_node.interfaces.chain import ChainExecutor
from shh_node.interfaces.wallet_source import WalletSource
from shh_node.models.config import NodeConfig
from shh_node.models.offers import HeartbeatData, Offer, now_ms
from shh_node.monitoring.health import HealthReporter, HealthServer
from shh_node.monitoring.metrics import NodeMetrics
from shh_node.node.coordinator import OfferCoordinator
from shh_node.policy.admission import AdmissionPolicy
from shh_node.solana.executor import SolanaChainExecutor
from shh_node.solana.source import SolanaWalletSource
from shh_node.wallet.pool import WalletPool

log = logging.getLogger(__name__)


class RelayNode:
    """Privacy relay node.

    Validates chain and wallet state, connects to the dispatcher, then runs
    three background activities: offer polling, offer coordination, and
    heartbeats. Solana-backed collaborators are built from config unless
    passed in.
    """

    def __init__(
        self,
        cfg: NodeConfig,
        wallet_source: WalletSource | None = None,
        chain: ChainExecutor | None = None,
    ) -> None:
        self._cfg = cfg
        self._running = False
        self._stopped = asyncio.Event()

        self._rpc: AsyncClient | None = None
        if wallet_source is None or chain is None:
            self._rpc = AsyncClient(cfg.rpc_url, commitment=Commitment(cfg.rpc_commitment))
        self.wallet_source: WalletSource = wallet_source or SolanaWalletSource(
            self._rpc, cfg.usdc_mint,
        )
        chain = chain or SolanaChainExecutor(
            self._rpc, cfg.usdc_mint, commitment=cfg.rpc_commitment, max_retries=cfg.retry_max,
        )

        # Core components
        self.pool = WalletPool.from_secrets(
            cfg.node_signer_secret,
            cfg.relay_signers,
            source=self.wallet_source,
            min_balance_sol=cfg.min_balance_sol,
        )
        self.metrics = NodeMetrics()
        self.gateway = HttpDispatchGateway(
            cfg.dispatcher_url, self.pool.identity, timeout=cfg.request_timeout,
        )
        self.engine = ExecutionEngine(self.pool, chain, confirm_timeout=cfg.tx_confirm_timeout)
        self.coordinator = OfferCoordinator(
            gateway=self.gateway,
            engine=self.engine,
            metrics=self.metrics,
            node_id=self.pool.identity_pubkey,
            policy=AdmissionPolicy(cfg.max_concurrent, cfg.per_tx_lamports),
            drain_timeout=cfg.drain_timeout,
            drain_poll_interval=cfg.drain_poll_interval,
            receipt_attempts=cfg.retry_max,
            retry_backoff=cfg.retry_backoff,
            retry_max_backoff=cfg.retry_max_backoff,
        )

        # Offer channel: subscription produces, coordinator consumes
        self.offers: asyncio.Queue[Offer] = asyncio.Queue()
        self.subscription = OfferSubscription(
            self.gateway, self.offers, poll_interval=cfg.offer_poll_interval,
        )

        # Monitoring
        self.health = HealthReporter(
            self.pool,
            self.metrics,
            active_offers=lambda: self.coordinator.active_count,
            min_balance_sol=cfg.min_balance_sol,
        )
        self.health_server = HealthServer(
            self.health, self.metrics, host=cfg.health_host, port=cfg.health_port,
        )

        self._consumer_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Validate state, connect, and start background activities."""
        if self._running:
            raise RuntimeError("Node is already running")

        log.info("Starting SHH relay node")
        log.info("  Node ID: %s", self.pool.identity_pubkey)
        log.info("  Relay wallets: %d", len(self.pool))
        log.info("  RPC: %s", self._cfg.rpc_url)
        log.info("  Dispatcher: %s", self._cfg.dispatcher_url)

        slot = await self.wallet_source.get_slot()
        log.info("Connected to Solana (slot: %d)", slot)

        await self.pool.validate_balances()
        await self.gateway.connect()
        await self.health_server.start()

        self._running = True
        self._stopped.clear()
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        self._consumer_task = asyncio.create_task(self.coordinator.run(self.offers))
        await self.subscription.start()
        log.info("SHH relay node started")

    async def stop(self) -> None:
        """Stop intake, drain active offers, and release resources."""
        if not self._running:
            return
        log.info("Stopping SHH relay node...")
        self._running = False

        try:
            await self.subscription.stop()
            await _cancel(self._heartbeat_task)
            self._heartbeat_task = None

            await self.coordinator.shutdown()
            await _cancel(self._consumer_task)
            self._consumer_task = None

            await self.close()
        finally:
            self._stopped.set()
        log.info("SHH relay node stopped")

    async def close(self) -> None:
        """Release network resources. Safe to call after a failed start."""
        await self.gateway.disconnect()
        await self.health_server.stop()
        if self._rpc is not None:
            await self._rpc.close()
            self._rpc = None

    async def wait_stopped(self) -> None:
        await self._stopped.wait()

    # ── Heartbeat ─────────────────────────────────────────

    async def send_heartbeat(self) -> bool:
        """Build and send one heartbeat, recording the result in metrics."""
        status = await self.health.get_status()
        ok = await self.gateway.heartbeat(HeartbeatData(
            timestamp=now_ms(),
            status=status.status,
            balances=[w.to_dict() for w in status.wallets],
            active_offers=self.coordinator.active_count,
            version=self._cfg.version,
        ))
        if ok:
            self.metrics.record_heartbeat()
            log.debug("Heartbeat sent")
        else:
            self.metrics.record_heartbeat_error()
        return ok

    async def _heartbeat_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._cfg.heartbeat_interval)
                await self.send_heartbeat()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                log.warning("Heartbeat failed: %s", exc)
                self.metrics.record_heartbeat_error()


async def _cancel(task: asyncio.Task | None) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


async def run_node(cfg: NodeConfig) -> None:
    """Entry point for running the relay node until signalled."""
    node = RelayNode(cfg)
    loop = asyncio.get_running_loop()

    def _stop_done(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            log.error("Error during shutdown: %s", task.exception(), exc_info=task.exception())

    def _request_stop(reason: str) -> None:
        log.info("Received %s, shutting down gracefully...", reason)
        asyncio.ensure_future(node.stop()).add_done_callback(_stop_done)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop, sig.name)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    def _exception_handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        log.error("Unhandled exception: %s", context.get("message"), exc_info=context.get("exception"))
        _request_stop("unhandled exception")

    loop.set_exception_handler(_exception_handler)

    try:
        await node.start()
    except Exception:
        await node.close()
        raise
    log.info("Monitor status at: http://localhost:%d/health", cfg.health_port)
    await node.wait_stopped()
