"""Concrete matchers used to build routing trees."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any, Literal

from chatflux.envelope import content_of, field_of
from chatflux.rules.base import Rule, Transform
from chatflux.types import Envelope


class Always(Rule):
    """Matches every message unchanged."""


class From(Rule):
    """Matches messages authored by ``user``."""

    def __init__(self, *children: Any, user: str, **kwargs: Any) -> None:
        super().__init__(*children, **kwargs)
        self.user = user

    def match(self, message: Envelope) -> Transform | Literal[False]:
        return field_of(message, "author") == self.user

    def describe(self) -> str:
        return f"{self.name}(user={self.user})"


class InRoom(Rule):
    """Matches messages posted to ``room``."""

    def __init__(self, *children: Any, room: str, **kwargs: Any) -> None:
        super().__init__(*children, **kwargs)
        self.room = room

    def match(self, message: Envelope) -> Transform | Literal[False]:
        return field_of(message, "room") == self.room

    def describe(self) -> str:
        return f"{self.name}(room={self.room})"


class Mention(Rule):
    """Matches messages mentioning ``@user`` and strips the mention."""

    def __init__(self, *children: Any, user: str, **kwargs: Any) -> None:
        super().__init__(*children, **kwargs)
        self.user = user
        self._pattern = re.compile(rf"@{re.escape(user)}\b\s*")

    def match(self, message: Envelope) -> Transform | Literal[False]:
        content = content_of(message)
        if self._pattern.search(content) is None:
            return False
        return {"content": self._pattern.sub("", content, count=1).strip()}

    def describe(self) -> str:
        return f"{self.name}(user={self.user})"


class Command(Rule):
    """Matches ``<prefix><name>`` at the start of the content.

    The rewritten message carries only the argument text, and the command name
    is recorded in ``metadata["command"]``.
    """

    def __init__(self, *children: Any, command: str, prefix: str = "", **kwargs: Any) -> None:
        kwargs.setdefault("name", f"Command:{command}")
        super().__init__(*children, **kwargs)
        self.command = command
        self.prefix = prefix
        self._pattern = re.compile(rf"^\s*{re.escape(prefix)}{re.escape(command)}(?:\s+|$)(?P<args>.*)$", re.DOTALL | re.IGNORECASE)

    def match(self, message: Envelope) -> Transform | Literal[False]:
        matched = self._pattern.match(content_of(message))
        if matched is None:
            return False
        return {"content": matched.group("args").strip(), "metadata": {"command": self.command}}


class Pattern(Rule):
    """Matches a regular expression anywhere in the content.

    Named groups are recorded in ``metadata["match"]``; content is unchanged.
    """

    def __init__(self, *children: Any, pattern: str | re.Pattern[str], **kwargs: Any) -> None:
        super().__init__(*children, **kwargs)
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern

    def match(self, message: Envelope) -> Transform | Literal[False]:
        matched = self.pattern.search(content_of(message))
        if matched is None:
            return False
        return {"metadata": {"match": matched.groupdict()}}

    def describe(self) -> str:
        return f"{self.name}({self.pattern.pattern})"


class Predicate(Rule):
    def __init__(self, *children: Any, predicate: Callable[[Envelope], bool], **kwargs: Any) -> None:
        super().__init__(*children, **kwargs)
        self.predicate = predicate

    def match(self, message: Envelope) -> Transform | Literal[False]:
        return bool(self.predicate(message))
