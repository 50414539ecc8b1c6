"""Conveniences for driving bots in tests and local sessions."""

from __future__ import annotations

import asyncio
import re
from collections import deque
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from loguru import logger

from chatflux.bot import Bot
from chatflux.envelope import as_json, content_of, field_of, to_message
from chatflux.errors import MatchAssertionError, MissingMessageError
from chatflux.service.memory import MemoryService
from chatflux.types import Envelope, Message

type Matcher = Callable[[Message], bool] | Mapping[str, Any] | re.Pattern[str]

BotT = TypeVar("BotT", bound=Bot)


class HarnessService(MemoryService):
    """Memory service wired to one bot, with message assertions."""

    __test__ = False

    def __init__(self) -> None:
        super().__init__()
        self.bot: Bot | None = None

    def connect(self, bot: Bot) -> None:
        self.bot = bot

    async def dispatch(self, message: Envelope) -> Any:
        if self.bot is None:
            raise RuntimeError("No bot connected to the harness.")
        return await self.bot.test(message, True)

    async def dispatch_message_to_room(self, room: str, content: str, author: str | None = None) -> Any:
        return await self.dispatch(await self.send_message_to_room(room, content, author))

    async def dispatch_message_to_person(self, person: str, content: str, author: str | None = None) -> Any:
        return await self.dispatch(await self.send_message_to_person(person, content, author))

    async def get_last_message_in_room(self, room: str, offset: int = 0) -> Message | None:
        messages = await self.get_messages_for_room(room)
        index = len(messages) - 1 - offset
        if index < 0:
            return None
        return messages[index]

    async def expect_message_in_room(self, room: str, matcher: Matcher, offset: int = 0) -> Message:
        message = await self.get_last_message_in_room(room, offset)
        self.match_message(message, matcher)
        return message  # type: ignore[return-value]

    async def expect_message_to_person(self, person: str, matcher: Matcher) -> Message:
        room = await self.get_private_room_for_person(person)
        return await self.expect_message_in_room(room, matcher)

    @staticmethod
    def match_message(message: Envelope | None, matcher: Matcher) -> None:
        if message is None:
            raise MissingMessageError()

        if isinstance(matcher, re.Pattern):
            if matcher.search(content_of(message)) is None:
                raise MatchAssertionError(
                    "Message does not match RegExp.",
                    expected=matcher.pattern,
                    actual=content_of(message),
                )
            return

        if isinstance(matcher, Mapping):
            actual = as_json(message)
            if actual != dict(matcher):
                raise MatchAssertionError(
                    "Message does not match expected shape.",
                    expected=dict(matcher),
                    actual=actual,
                    show_diff=True,
                )
            return

        if callable(matcher) and not matcher(to_message(message)):
            raise MatchAssertionError("Message does not match predicate.", actual=as_json(message))


class CapturingMixin:
    """Captures outbound messages instead of delivering them."""

    def _init_capture(self) -> None:
        self.messages: deque[Message] = deque()
        self.awaiting: deque[asyncio.Future[Message]] = deque()

    async def handle_message(self, message: Envelope, debug: bool | None = None, level: int = 0) -> Any:
        logger.info("harness.received author={} content={}", field_of(message, "author", "-"), content_of(message))
        return await super().handle_message(message, debug, level)  # type: ignore[misc]

    async def send_message(self, message: Envelope) -> Message:
        outbound = to_message(message)
        logger.info("harness.sending to={} content={}", outbound.to or "-", outbound.content)
        while self.awaiting:
            waiter = self.awaiting.popleft()
            if not waiter.done():
                waiter.set_result(outbound)
                return outbound
        self.messages.append(outbound)
        return outbound

    async def await_message(self) -> Message:
        if self.messages:
            return self.messages.popleft()
        waiter: asyncio.Future[Message] = asyncio.get_running_loop().create_future()
        self.awaiting.append(waiter)
        return await waiter

    async def expect_message(self, expected: Mapping[str, Any] | Message) -> Message:
        message = await self.await_message()
        HarnessService.match_message(message, as_json(expected))
        return message


def capture(bot_cls: type[BotT], *args: Any, **kwargs: Any) -> BotT:
    """Instantiate ``bot_cls`` with outbound messages captured in memory."""

    class Capturing(CapturingMixin, bot_cls):  # type: ignore[valid-type, misc]
        __test__ = False

        def __init__(self, *init_args: Any, **init_kwargs: Any) -> None:
            super().__init__(*init_args, **init_kwargs)
            self._init_capture()

    Capturing.__name__ = bot_cls.__name__
    Capturing.__qualname__ = bot_cls.__qualname__
    return Capturing(*args, **kwargs)  # type: ignore[return-value]
