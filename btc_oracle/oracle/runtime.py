"""Oracle runtime.

Main loop: reconcile at startup -> poll for new confirmed blocks every
``poll_interval`` seconds (or as soon as a new-block notification arrives).
Inbound chat messages are answered concurrently by the proof responder.
An integrity error halts the runtime.
"""

from __future__ import annotations

import asyncio
from typing import Any

import bittensor as bt

from btc_oracle.errors import IntegrityError
from btc_oracle.messaging.interface import MessageTransport

from .notifications import OperatorNotifier
from .publisher import Publisher
from .reconciler import GapReconciler
from .responder import ProofResponder

LOOKUP_FAILED_TEXT = "Failed to get the address history, try again in a minute."


class OracleRuntime:
    """Drives reconciliation and answers proof requests."""

    def __init__(
        self,
        reconciler: GapReconciler,
        publisher: Publisher,
        responder: ProofResponder,
        transport: MessageTransport,
        notifier: OperatorNotifier | None = None,
        config: dict[str, Any] | None = None,
    ):
        self.reconciler = reconciler
        self.publisher = publisher
        self.responder = responder
        self.transport = transport
        self.notifier = notifier or publisher.notifier
        self.config = config or {}

        self._poll_interval = float(self.config.get("poll_interval_seconds", 30))
        self._running = False
        self._wake = asyncio.Event()
        self.fatal_error: str | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """Main oracle loop. Runs until stopped or halted."""
        self._running = True
        bt.logging.info({"oracle_runtime": {"status": "starting", "poll_interval": self._poll_interval}})

        consecutive_errors = 0
        cycle = self.reconciler.reconcile

        while self._running:
            try:
                await cycle()
                consecutive_errors = 0
                cycle = self.reconciler.check_for_new_blocks
            except asyncio.CancelledError:
                break
            except Exception as e:
                consecutive_errors += 1
                # Transient: owed heights stay owed, keep polling with capped backoff
                bt.logging.error({"oracle_cycle_error": str(e), "consecutive": consecutive_errors})
                await self._sleep(min(30, 5 * consecutive_errors))
                continue

            await self._sleep(self._poll_interval)

        self._running = False
        await self.publisher.shutdown()
        bt.logging.info({"oracle_runtime": "stopped"})

    async def _sleep(self, seconds: float) -> None:
        """Sleep, waking early on stop() or a new-block notification."""
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
        self._wake.clear()

    def notify_new_block(self) -> None:
        """Check for newly confirmed blocks without waiting for the poll."""
        self._wake.set()

    def stop(self) -> None:
        """Signal the runtime to stop."""
        self._running = False
        self._wake.set()

    async def halt(self, reason: str) -> None:
        self.fatal_error = reason
        bt.logging.error({"oracle_runtime": {"halt": reason}})
        await self.notifier.notify_admin("BTC Oracle halted", reason)
        self.stop()

    async def handle_message(self, sender: str, text: str) -> None:
        """Answer one inbound chat message."""
        try:
            replies = await self.responder.handle_text(sender, text)
        except IntegrityError as e:
            await self.halt(f"integrity error: {e}")
            return
        except Exception as e:
            bt.logging.warning({"oracle_responder_error": {"sender": sender[:16], "error": str(e)}})
            await self.notifier.notify_admin("proof lookup failed", f"{text!r}: {e}")
            replies = [LOOKUP_FAILED_TEXT]

        try:
            for reply in replies:
                await self.transport.send(sender, reply)
        except Exception as e:
            bt.logging.warning({"oracle_transport_error": {"sender": sender[:16], "error": str(e)}})
            await self.notifier.notify_admin("reply delivery failed", f"to {sender}: {e}")


__all__ = ["LOOKUP_FAILED_TEXT", "OracleRuntime"]
