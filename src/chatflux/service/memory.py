"""In-memory delivery service."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from blinker import Signal
from loguru import logger

from chatflux.envelope import preview, to_message
from chatflux.snapshot import StateStack
from chatflux.types import Envelope, Message

PRIVATE_ROOM_PREFIX = "private:"
SNAPSHOT_FIELDS = ("people", "rooms", "messages")


def _project(service: MemoryService) -> dict[str, Any]:
    return {name: getattr(service, name) for name in SNAPSHOT_FIELDS}


class MemoryService:
    """People, rooms and messages kept in process memory.

    Every stored message is logged and published on ``message_sent``.
    """

    def __init__(self) -> None:
        self.people: dict[str, dict[str, Any]] = {}
        self.rooms: dict[str, list[str]] = {}
        self.messages: dict[str, list[Message]] = {}
        self.message_sent = Signal("chatflux.message_sent")
        self._stack = StateStack(project=_project)

    def create_person(self, person: str, **profile: Any) -> str:
        self.people[person] = {"name": person, **profile}
        return person

    def create_room(self, room: str, members: Iterable[str] = ()) -> str:
        self.rooms[room] = list(members)
        self.messages.setdefault(room, [])
        return room

    async def get_person(self, person: str) -> dict[str, Any] | None:
        return self.people.get(person)

    async def get_room(self, room: str) -> list[str] | None:
        return self.rooms.get(room)

    async def get_private_room_for_person(self, person: str) -> str:
        room = f"{PRIVATE_ROOM_PREFIX}{person}"
        if room not in self.rooms:
            if person not in self.people:
                self.create_person(person)
            self.create_room(room, [person])
        return room

    async def get_messages_for_room(self, room: str) -> list[Message]:
        return list(self.messages.get(room, []))

    async def send_message(self, message: Envelope) -> Message:
        outbound = to_message(message)
        room = outbound.room
        if room is None:
            if outbound.to is None:
                raise ValueError("Message has neither `room` nor `to`.")
            room = await self.get_private_room_for_person(outbound.to)
        elif room not in self.rooms:
            self.create_room(room)
        self.messages.setdefault(room, []).append(outbound)
        logger.info(
            "service.message room={} author={} to={} content={}",
            room,
            outbound.author or "-",
            outbound.to or "-",
            preview(outbound),
        )
        self.message_sent.send(self, message=outbound, room=room)
        return outbound

    async def send_message_to_room(self, room: str, content: str, author: str | None = None) -> Message:
        return await self.send_message(Message(content=content, author=author, room=room))

    async def send_message_to_person(self, person: str, content: str, author: str | None = None) -> Message:
        # Person messages are keyed by their private room but carry only `to`.
        return await self.send_message(Message(content=content, author=author, to=person))

    def push_state(self) -> int:
        return self._stack.push(self)

    def pop_state(self) -> None:
        for name, value in self._stack.pop().items():
            setattr(self, name, value)
