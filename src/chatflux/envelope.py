"""Utilities for reading and rewriting message envelopes."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

from chatflux.types import Envelope, Message

PREVIEW_LENGTH = 40


def field_of(message: Envelope, key: str, default: Any = None) -> Any:
    """Read a field from mapping-like or attribute-based messages."""

    if isinstance(message, Mapping):
        return message.get(key, default)
    return getattr(message, key, default)


def content_of(message: Envelope) -> str:
    """Get textual content from any envelope shape."""

    return str(field_of(message, "content", "") or "")


def preview(message: Envelope, length: int = PREVIEW_LENGTH) -> str:
    content = content_of(message)
    if len(content) > length:
        return content[:length] + "..."
    return content


def to_message(message: Envelope) -> Message:
    """Coerce a mapping or attribute object into a Message."""

    if isinstance(message, Message):
        return message
    names = {f.name for f in dataclasses.fields(Message)}
    if isinstance(message, Mapping):
        data = {k: v for k, v in message.items() if k in names}
    else:
        data = {name: getattr(message, name) for name in names if hasattr(message, name)}
    data.setdefault("content", "")
    return Message(**data)


def as_json(message: Envelope) -> Any:
    """Plain representation used for equality assertions."""

    if isinstance(message, Message):
        return message.to_json()
    if isinstance(message, Mapping):
        return dict(message)
    to_json = getattr(message, "to_json", None)
    if callable(to_json):
        return to_json()
    return message


def apply_transform(message: Envelope, transform: Any) -> Envelope:
    """Return the message a matcher's transform descriptor produces.

    ``True`` and ``None`` leave the message untouched, a mapping overrides
    fields, a callable maps the message to a new one. The input is never
    mutated.
    """

    if transform is None or transform is True:
        return message
    if isinstance(transform, Mapping):
        return _replace(message, dict(transform))
    if callable(transform):
        return transform(message)
    raise TypeError(f"unsupported transform descriptor: {transform!r}")


def _replace(message: Envelope, changes: dict[str, Any]) -> Envelope:
    metadata = changes.get("metadata")
    current = field_of(message, "metadata")
    if isinstance(metadata, Mapping) and isinstance(current, Mapping):
        changes["metadata"] = {**current, **metadata}
    if dataclasses.is_dataclass(message) and not isinstance(message, type):
        return dataclasses.replace(message, **changes)
    if isinstance(message, Mapping):
        return {**message, **changes}
    return dataclasses.replace(to_message(message), **changes)
