"""Core data types shared by the router, the store and the services."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

type State = Any
type Envelope = Any
type Emit = Callable[..., None]
type Reducer = Callable[[State, "Action", Emit], State]
type TransitionHook = Callable[["Action", State, State, "Mutation"], Awaitable[None] | None]
type ActionHandler = Callable[[Envelope], Any]


@dataclass(frozen=True)
class Message:
    """One chat message, inbound or outbound."""

    content: str
    author: str | None = None
    to: str | None = None
    room: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC), compare=False)

    def to_json(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("timestamp")
        return {key: value for key, value in data.items() if value not in (None, {})}


@dataclass(frozen=True)
class Action:
    """Flux standard action."""

    type: str
    payload: Any = None


@dataclass(frozen=True)
class Mutation:
    """One reducer-emitted transition step."""

    type: str
    payload: Any = None


@dataclass
class QueuedDispatch:
    """A dispatch deferred while another one is in flight."""

    action: Any
    future: asyncio.Future[Any]


def to_action(type_or_action: Any, payload: Any = None) -> Any:
    """Normalize a positional ``(type, payload)`` pair to an Action.

    Pre-built actions (an ``Action``, a mapping or any other object) are
    returned unchanged so the reducer sees every field they carry.
    """

    if isinstance(type_or_action, str):
        return Action(type=type_or_action, payload=payload)
    return type_or_action


def action_type(action: Any) -> str:
    """Type name of an action, for logging."""

    if isinstance(action, Mapping):
        value = action.get("type")
    else:
        value = getattr(action, "type", None)
    return str(value) if value is not None else type(action).__name__
