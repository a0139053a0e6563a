"""MessageTransport that only logs replies (no chat bridge configured)."""

from __future__ import annotations

import bittensor as bt


class LoggingMessenger:

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def close(self) -> None:
        return None

    async def send(self, sender_id: str, text: str) -> None:
        self.sent.append((sender_id, text))
        bt.logging.info({"chat_reply": {"to": sender_id[:16], "text": text}})


__all__ = ["LoggingMessenger"]
