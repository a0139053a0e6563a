"""MessageTransport protocol - outbound half of the chat channel.

Inbound messages arrive through OracleHTTPServer (POST /messages).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MessageTransport(Protocol):

    async def send(self, sender_id: str, text: str) -> None:
        """Deliver ``text`` to the device/user ``sender_id``."""
        ...


__all__ = ["MessageTransport"]
