"""Bots: a store whose committed state renders a routing tree."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from loguru import logger

from chatflux.envelope import apply_transform, preview
from chatflux.logging_utils import NullTraceLogger, TraceLogger, bot_context
from chatflux.rules.base import Rule
from chatflux.service.base import DeliveryService, ServiceDelegate
from chatflux.store import Store
from chatflux.types import Envelope, Message, State


@dataclass(frozen=True)
class BotContext:
    """Collaborators handed to a bot at construction."""

    service: DeliveryService | None = None
    trace: TraceLogger | None = None


class Bot(Store, Rule):
    """Base class for chat bots.

    Subclasses set an initial ``state``, implement ``reduce`` (and optionally
    ``transition``) and return their decision tree from ``render``. The tree
    is rebuilt from every committed state and built lazily on the first
    message.
    """

    def __init__(
        self,
        props: Mapping[str, Any] | None = None,
        context: BotContext | None = None,
        *,
        debug: bool | None = None,
    ) -> None:
        context = context or BotContext()
        Store.__init__(self, None, debug=debug, trace=context.trace)
        Rule.__init__(self, debug=debug, trace=context.trace)
        self.props: dict[str, Any] = dict(props or {})
        self.context = context
        self.delegate = ServiceDelegate(context.service)
        self.mount: Rule | None = None

    def render(self) -> Rule | None:
        return None

    def set_state(self, state: State) -> None:
        # The state and its mount change together; a failing render keeps both.
        previous = self.state
        super().set_state(state)
        try:
            mount = self.render()
        except Exception:
            super().set_state(previous)
            raise
        self.mount = mount
        if mount is not None:
            self._adopt_trace(mount)

    def initialize(self) -> None:
        self.set_state(self.state)

    async def handle_message(self, message: Envelope, debug: bool | None = None, level: int = 0) -> list[Any] | None:
        """Pass a message through the decision tree and run the matched actions.

        Actions run one after the other, in the order the tree produced them.
        Returns their results, or ``None`` when nothing matched.
        """

        if self.mount is None:
            self.initialize()
        if self.mount is None:
            return None

        debug = self.debug if debug is None else debug
        with bot_context(self.name):
            actions = await self.mount.test(message, debug, level)
            if not actions:
                return None

            results: list[Any] = []
            for action in actions:
                logger.debug("bot.action bot={} rule={}", self.name, action.rule.describe())
                results.append(await action())
            return results

    async def test(self, message: Envelope, debug: bool | None = None, level: int = 0) -> Literal[False] | None:
        transform = self.match(message)
        if transform is False:
            return None

        message = apply_transform(message, transform)
        if level == 0:
            self.trace_logger.trace(f"message: {preview(message)}", indent=level)

        debug = self.debug if debug is None else debug
        if debug:
            self.trace_logger.trace(f"bot: {type(self).__name__}", indent=level)

        await self.handle_message(message, debug, level + 1)

        return False

    async def send_message(self, message: Envelope) -> Message:
        return await self.delegate.send_message(message)

    async def send_message_to_room(self, room: str, content: str, author: str | None = None) -> Message:
        return await self.delegate.send_message_to_room(room, content, author)

    async def send_message_to_person(self, person: str, content: str, author: str | None = None) -> Message:
        return await self.delegate.send_message_to_person(person, content, author)

    async def get_messages_for_room(self, room: str) -> list[Message]:
        return await self.delegate.get_messages_for_room(room)

    async def get_private_room_for_person(self, person: str) -> str:
        return await self.delegate.get_private_room_for_person(person)

    def to_json(self) -> State:
        return self.state

    def _adopt_trace(self, root: Rule) -> None:
        pending = [root]
        while pending:
            node = pending.pop()
            if isinstance(node, Bot):
                continue
            if isinstance(node.trace_logger, NullTraceLogger):
                node.trace_logger = self.trace_logger
            pending.extend(node.children)

    def __str__(self) -> str:
        return type(self).__name__
