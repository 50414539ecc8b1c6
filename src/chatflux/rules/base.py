"""Rule nodes and the matcher/transform routing protocol."""

from __future__ import annotations

import inspect
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Literal

from chatflux.envelope import apply_transform
from chatflux.logging_utils import NullTraceLogger, TraceLogger
from chatflux.types import ActionHandler, Envelope

type Transform = Any
type TestResult = list["MatchedAction"] | Literal[False] | None


@dataclass(frozen=True)
class MatchedAction:
    """A handler bound to the message its rule saw."""

    handler: ActionHandler
    message: Envelope
    rule: Rule

    async def __call__(self) -> Any:
        result = self.handler(self.message)
        if inspect.isawaitable(result):
            result = await result
        return result


class Rule:
    """One node of a routing tree.

    ``match`` decides whether the message enters this node and may rewrite it
    for the node's handler and children. Children are tested in order; a child
    answering ``False`` has consumed the message and its siblings are skipped.
    With ``exclusive`` the first child producing actions ends the scan.
    """

    debug: bool = False

    def __init__(
        self,
        *children: Rule | Iterable[Rule] | None,
        handler: ActionHandler | None = None,
        name: str | None = None,
        debug: bool | None = None,
        exclusive: bool = False,
        trace: TraceLogger | None = None,
    ) -> None:
        self.children: list[Rule] = flatten_rules(children)
        self.handler = handler
        self.name = name or type(self).__name__
        self.exclusive = exclusive
        if debug is not None:
            self.debug = debug
        self.trace_logger: TraceLogger = trace or NullTraceLogger()

    def match(self, message: Envelope) -> Transform | Literal[False]:
        return True

    async def test(self, message: Envelope, debug: bool | None = None, level: int = 0) -> TestResult:
        transform = self.match(message)
        if transform is False:
            return None

        message = apply_transform(message, transform)
        debug = self.debug if debug is None else debug
        if debug:
            self.trace_logger.trace(f"rule: {self.describe()}", indent=level)

        actions: list[MatchedAction] = []
        if self.handler is not None:
            actions.append(MatchedAction(handler=self.handler, message=message, rule=self))

        for child in self.children:
            result = await child.test(message, debug, level + 1)
            if result is False:
                break
            if result:
                actions.extend(result)
                if self.exclusive:
                    break

        return actions or None

    def add(self, *children: Rule | Iterable[Rule] | None) -> Rule:
        self.children.extend(flatten_rules(children))
        return self

    def describe(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.describe()} children={len(self.children)}>"


def flatten_rules(items: Iterable[Any]) -> list[Rule]:
    """Flatten nested rule lists, dropping ``None`` placeholders."""

    rules: list[Rule] = []
    for item in items:
        if item is None:
            continue
        if isinstance(item, Rule):
            rules.append(item)
        elif isinstance(item, Iterable) and not isinstance(item, (str, bytes)):
            rules.extend(flatten_rules(item))
        else:
            raise TypeError(f"not a rule: {item!r}")
    return rules
