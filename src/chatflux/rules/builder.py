"""Explicit builder for routing trees."""

from __future__ import annotations

import contextlib
from collections.abc import Generator

from chatflux.rules.base import Rule
from chatflux.rules.matchers import Always
from chatflux.types import ActionHandler


class RuleBuilder:
    """Compose a rule tree step by step.

    >>> builder = RuleBuilder(From(user="mod"))
    >>> builder.add(Command(command="plan", handler=plan))
    >>> with builder.group(Mention(user="bot")) as mentioned:
    ...     mentioned.on(Command(command="help"), help_handler)
    >>> tree = builder.build()
    """

    def __init__(self, root: Rule | None = None) -> None:
        self._root = root if root is not None else Always()

    def add(self, *rules: Rule | None) -> RuleBuilder:
        self._root.add(*rules)
        return self

    def on(self, rule: Rule, handler: ActionHandler) -> RuleBuilder:
        """Attach ``handler`` to ``rule`` and add it as a child."""
        rule.handler = handler
        return self.add(rule)

    def when(self, condition: bool, *rules: Rule | None) -> RuleBuilder:
        if condition:
            self.add(*rules)
        return self

    @contextlib.contextmanager
    def group(self, rule: Rule) -> Generator[RuleBuilder, None, None]:
        nested = RuleBuilder(rule)
        yield nested
        self.add(nested.build())

    def build(self) -> Rule:
        return self._root
