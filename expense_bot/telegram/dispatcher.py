from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from .messages import OutboundMessage


class ReplyHandleUsedError(RuntimeError):
    """Raised when a reply handle is used more than once."""


class ReplyHandle(Protocol):
    async def send(self, message: OutboundMessage) -> None: ...


class PushChannel(Protocol):
    async def push(self, user_id: str, messages: Sequence[OutboundMessage]) -> None: ...


class SingleUseReply:
    """Wraps a transport reply so it can be spent exactly once."""

    def __init__(self, handle: ReplyHandle) -> None:
        self._handle = handle
        self._used = False

    @property
    def used(self) -> bool:
        return self._used

    async def send(self, message: OutboundMessage) -> None:
        if self._used:
            raise ReplyHandleUsedError("Reply handle has already been used")
        self._used = True
        await self._handle.send(message)


class MessageDispatcher:
    """Reply with the first message, push the rest to the user."""

    def __init__(self, push_channel: PushChannel) -> None:
        self.push_channel = push_channel

    async def deliver(
        self,
        messages: Sequence[OutboundMessage],
        reply_handle: ReplyHandle,
        user_id: str,
    ) -> None:
        if not messages:
            return
        first, *rest = messages
        await reply_handle.send(first)
        if rest:
            await self.push_channel.push(user_id, rest)
