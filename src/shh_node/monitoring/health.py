"""Health reporting - status computation and the local HTTP health surface."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Callable

from aiohttp import web

from shh_node.models.records import HealthStatus
from shh_node.monitoring.metrics import PROMETHEUS_CONTENT_TYPE, NodeMetrics
from shh_node.wallet.pool import MIN_BALANCE_SOL, WalletPool

log = logging.getLogger(__name__)

AVAILABLE_PATHS = ["/health", "/metrics", "/ready"]

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

_json_response = partial(
    web.json_response, headers=_CORS_HEADERS, dumps=partial(json.dumps, indent=2),
)


class HealthReporter:
    """Builds HealthStatus from wallet balances, active offers and metrics.

    degraded: at least one relay wallet below the minimum balance.
    unhealthy: every relay wallet below the minimum balance.
    """

    def __init__(
        self,
        pool: WalletPool,
        metrics: NodeMetrics,
        active_offers: Callable[[], int],
        min_balance_sol: float = MIN_BALANCE_SOL,
    ) -> None:
        self._pool = pool
        self._metrics = metrics
        self._active_offers = active_offers
        self._min_balance_sol = min_balance_sol

    async def get_status(self) -> HealthStatus:
        wallets = await self._pool.balances()
        low = [w for w in wallets if w.balance_sol < self._min_balance_sol]

        status = "healthy"
        if low:
            status = "unhealthy" if len(low) == len(wallets) else "degraded"

        return HealthStatus(
            status=status,
            uptime=int(self._metrics.uptime_seconds()),
            wallets=wallets,
            active_offers=self._active_offers(),
            metrics=self._metrics.snapshot(),
        )


class HealthServer:
    """aiohttp server exposing /health, /ready and /metrics."""

    def __init__(
        self,
        reporter: HealthReporter,
        metrics: NodeMetrics,
        host: str = "0.0.0.0",
        port: int = 8080,
    ) -> None:
        self._reporter = reporter
        self._metrics = metrics
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self._dispatch)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.make_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        log.info("Health server listening on %s:%d", self._host, self._port)

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        log.info("Health server stopped")

    async def _dispatch(self, request: web.Request) -> web.Response:
        if request.method == "OPTIONS":
            return web.Response(status=204, headers=_CORS_HEADERS)

        try:
            if request.path in ("/", "/health"):
                return await self._health()
            if request.path == "/metrics":
                return self._metrics_response(request)
            if request.path == "/ready":
                return await self._ready()
            return _json_response(
                {"error": "Not found", "available": AVAILABLE_PATHS}, status=404,
            )
        except Exception as exc:
            log.error("Request handler error: %s", exc, exc_info=True)
            return _json_response(
                {"error": "Internal server error", "message": str(exc)}, status=500,
            )

    async def _health(self) -> web.Response:
        status = await self._reporter.get_status()
        return _json_response(
            {
                "status": status.status,
                "uptime": status.uptime,
                "walletCount": len(status.wallets),
                "activeWalletCount": status.active_wallet_count,
                "activeOffers": status.active_offers,
                "metrics": status.metrics.to_dict(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            status=503 if status.status == "unhealthy" else 200,
        )

    def _metrics_response(self, request: web.Request) -> web.Response:
        if request.query.get("format") == "prometheus":
            return web.Response(
                body=self._metrics.prometheus_text().encode("utf-8"),
                headers={**_CORS_HEADERS, "Content-Type": PROMETHEUS_CONTENT_TYPE},
            )
        return _json_response(self._metrics.snapshot().to_dict())

    async def _ready(self) -> web.Response:
        status = await self._reporter.get_status()
        ready = status.status != "unhealthy" and status.active_wallet_count > 0
        return _json_response(
            {
                "ready": ready,
                "reason": "Node is ready to accept offers" if ready
                else "Node not ready - check wallet balances",
            },
            status=200 if ready else 503,
        )
