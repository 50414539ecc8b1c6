from __future__ import annotations

from typing import Any

import pytest

from chatflux.errors import ConfigurationError
from chatflux.service import DELEGATED_METHODS, MemoryService, ServiceDelegate, is_service_like
from chatflux.types import Message


@pytest.mark.asyncio
async def test_send_message_to_person_uses_private_room() -> None:
    service = MemoryService()

    await service.send_message({"content": "hi", "to": "alice"})

    room = await service.get_private_room_for_person("alice")
    assert room == "private:alice"
    assert await service.get_messages_for_room(room) == [Message(content="hi", to="alice")]
    assert await service.get_person("alice") == {"name": "alice"}
    assert await service.get_room(room) == ["alice"]


@pytest.mark.asyncio
async def test_person_messages_are_stored_alike_on_both_paths() -> None:
    service = MemoryService()

    await service.send_message({"content": "one", "to": "alice"})
    await service.send_message_to_person("alice", "two")

    messages = await service.get_messages_for_room("private:alice")
    assert [m.to_json() for m in messages] == [
        {"content": "one", "to": "alice"},
        {"content": "two", "to": "alice"},
    ]


@pytest.mark.asyncio
async def test_send_message_to_unknown_room_creates_it() -> None:
    service = MemoryService()

    await service.send_message_to_room("lobby", "welcome", "bot")

    assert await service.get_room("lobby") == []
    messages = await service.get_messages_for_room("lobby")
    assert [(m.author, m.content) for m in messages] == [("bot", "welcome")]


@pytest.mark.asyncio
async def test_send_message_requires_a_destination() -> None:
    with pytest.raises(ValueError):
        await MemoryService().send_message({"content": "lost"})


@pytest.mark.asyncio
async def test_message_sent_signal_fires_for_every_message() -> None:
    service = MemoryService()
    received: list[tuple[str, str]] = []

    def receiver(_sender: Any, *, message: Message, room: str) -> None:
        received.append((room, message.content))

    service.message_sent.connect(receiver)
    await service.send_message_to_room("lobby", "one")
    await service.send_message_to_person("bob", "two")

    assert received == [("lobby", "one"), ("private:bob", "two")]


@pytest.mark.asyncio
async def test_push_pop_restores_people_rooms_and_messages() -> None:
    service = MemoryService()
    service.create_person("alice")
    service.create_room("lobby", ["alice"])
    await service.send_message_to_room("lobby", "before")

    service.push_state()
    service.create_person("bob")
    service.rooms["lobby"].append("bob")
    await service.send_message_to_room("lobby", "after")
    service.pop_state()

    assert list(service.people) == ["alice"]
    assert service.rooms == {"lobby": ["alice"]}
    assert [m.content for m in await service.get_messages_for_room("lobby")] == ["before"]


def test_memory_service_satisfies_delivery_contract() -> None:
    assert is_service_like(MemoryService())
    assert is_service_like(ServiceDelegate(None))
    assert not is_service_like(None)
    assert not is_service_like(object())
    assert "send_message" in DELEGATED_METHODS


def test_delegate_rejects_objects_without_delivery_operations() -> None:
    with pytest.raises(ConfigurationError):
        ServiceDelegate(object())
