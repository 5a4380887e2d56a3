from __future__ import annotations

from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock

from expense_bot.telegram.dispatcher import MessageDispatcher, ReplyHandleUsedError, SingleUseReply
from expense_bot.telegram.messages import TextMessage


class MessageDispatcherTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.push = AsyncMock()
        self.reply = AsyncMock()
        self.dispatcher = MessageDispatcher(self.push)

    async def test_single_message_uses_reply_only(self) -> None:
        await self.dispatcher.deliver([TextMessage("hi")], self.reply, "u1")

        self.reply.send.assert_awaited_once_with(TextMessage("hi"))
        self.push.push.assert_not_awaited()

    async def test_remaining_messages_are_pushed_in_order(self) -> None:
        messages = [TextMessage("one"), TextMessage("two"), TextMessage("three")]

        await self.dispatcher.deliver(messages, self.reply, "u1")

        self.reply.send.assert_awaited_once_with(TextMessage("one"))
        self.push.push.assert_awaited_once_with("u1", [TextMessage("two"), TextMessage("three")])

    async def test_empty_sequence_sends_nothing(self) -> None:
        await self.dispatcher.deliver([], self.reply, "u1")

        self.reply.send.assert_not_awaited()
        self.push.push.assert_not_awaited()

    async def test_push_failure_does_not_undo_reply(self) -> None:
        self.push.push.side_effect = RuntimeError("push failed")

        with self.assertRaises(RuntimeError):
            await self.dispatcher.deliver([TextMessage("a"), TextMessage("b")], self.reply, "u1")

        self.reply.send.assert_awaited_once_with(TextMessage("a"))


class SingleUseReplyTests(IsolatedAsyncioTestCase):
    async def test_second_send_raises(self) -> None:
        handle = AsyncMock()
        reply = SingleUseReply(handle)

        await reply.send(TextMessage("first"))
        self.assertTrue(reply.used)

        with self.assertRaises(ReplyHandleUsedError):
            await reply.send(TextMessage("second"))
        handle.send.assert_awaited_once_with(TextMessage("first"))
