"""Delivery service contract consumed by bots."""

from __future__ import annotations

from typing import Any, Protocol

from chatflux.errors import ConfigurationError, ServiceNotConfiguredError
from chatflux.types import Envelope, Message

DELEGATED_METHODS = (
    "send_message",
    "send_message_to_room",
    "send_message_to_person",
    "get_messages_for_room",
    "get_private_room_for_person",
)


class DeliveryService(Protocol):
    """Minimal async contract for chat delivery providers."""

    async def send_message(self, message: Envelope) -> Message: ...

    async def send_message_to_room(self, room: str, content: str, author: str | None = None) -> Message: ...

    async def send_message_to_person(self, person: str, content: str, author: str | None = None) -> Message: ...

    async def get_messages_for_room(self, room: str) -> list[Message]: ...

    async def get_private_room_for_person(self, person: str) -> str: ...


class ServiceDelegate:
    """Forwards the delivery operations to a service resolved once at construction."""

    def __init__(self, service: DeliveryService | None) -> None:
        if service is not None and not is_service_like(service):
            raise ConfigurationError(f"{type(service).__name__} does not provide the delivery operations.")
        self._service = service

    @property
    def service(self) -> DeliveryService | None:
        return self._service

    def _require(self, operation: str) -> DeliveryService:
        if self._service is None:
            raise ServiceNotConfiguredError(operation)
        return self._service

    async def send_message(self, message: Envelope) -> Message:
        return await self._require("send_message").send_message(message)

    async def send_message_to_room(self, room: str, content: str, author: str | None = None) -> Message:
        return await self._require("send_message_to_room").send_message_to_room(room, content, author)

    async def send_message_to_person(self, person: str, content: str, author: str | None = None) -> Message:
        return await self._require("send_message_to_person").send_message_to_person(person, content, author)

    async def get_messages_for_room(self, room: str) -> list[Message]:
        return await self._require("get_messages_for_room").get_messages_for_room(room)

    async def get_private_room_for_person(self, person: str) -> str:
        return await self._require("get_private_room_for_person").get_private_room_for_person(person)


def is_service_like(candidate: Any) -> bool:
    if candidate is None:
        return False
    return all(callable(getattr(candidate, name, None)) for name in DELEGATED_METHODS)
