"""Inbound HTTP endpoint for the oracle.

Runs as an async task in the oracle's event loop. Routes:
  POST /messages    - inbound chat text: {"sender": ..., "text": ...}
  POST /blocknotify - new block on the source chain (bitcoind -blocknotify)
  GET  /health      - liveness + publisher state
"""

from __future__ import annotations

import asyncio

import bittensor as bt
from aiohttp import web

from btc_oracle.oracle.runtime import OracleRuntime


class OracleHTTPServer:
    """Lightweight async HTTP server in front of the oracle runtime."""

    def __init__(
        self,
        runtime: OracleRuntime,
        host: str = "127.0.0.1",
        port: int = 8300,
        auth_token: str = "",
    ):
        self.runtime = runtime
        self.host = host
        self.port = port
        self.auth_token = auth_token
        self._runner: web.AppRunner | None = None
        self._tasks: set[asyncio.Task] = set()

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/messages", self._handle_message)
        app.router.add_post("/blocknotify", self._handle_blocknotify)
        app.router.add_get("/health", self._handle_health)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        bt.logging.info({"oracle_http": {"status": "started", "port": self.port}})

    async def stop(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._runner:
            await self._runner.cleanup()
            bt.logging.info({"oracle_http": "stopped"})

    def _authorized(self, request: web.Request) -> bool:
        if not self.auth_token:
            return True
        return request.headers.get("Authorization", "") == f"Bearer {self.auth_token}"

    async def _handle_message(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.json_response({"error": "unauthorized"}, status=401)
        try:
            body = await request.json()
            sender = str(body["sender"])
            text = str(body["text"])
        except Exception:
            bt.logging.warning({"oracle_request": {"endpoint": "messages", "status": 400}})
            return web.json_response({"error": "invalid_body"}, status=400)

        # Reply asynchronously through the transport; the caller only needs an ack
        task = asyncio.create_task(self.runtime.handle_message(sender, text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return web.json_response({"status": "accepted"}, status=202)

    async def _handle_blocknotify(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.json_response({"error": "unauthorized"}, status=401)
        self.runtime.notify_new_block()
        bt.logging.debug({"oracle_request": {"endpoint": "blocknotify", "status": 200}})
        return web.json_response({"status": "ok"})

    async def _handle_health(self, request: web.Request) -> web.Response:
        publisher = self.runtime.publisher
        return web.json_response({
            "running": self.runtime.running,
            "fatal_error": self.runtime.fatal_error,
            "in_flight": len(publisher.tracker.in_flight),
            "pending_retries": publisher.pending_retries,
            "last_confirmed_height": self.runtime.reconciler.last_confirmed_height,
        })


__all__ = ["OracleHTTPServer"]
