"""chatflux command line."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import typer

from chatflux.bot import BotContext
from chatflux.bots.poker import PokerBot
from chatflux.config import Settings, get_settings
from chatflux.control import serve as serve_control
from chatflux.harness import HarnessService
from chatflux.logging_utils import LoguruTraceLogger
from chatflux.types import Message

app = typer.Typer(name="chatflux", help="Rule-tree chat bots with serialized state transitions", add_completion=False)


def _build_session(settings: Settings, moderator: str, room: str) -> tuple[HarnessService, PokerBot]:
    service = HarnessService()
    service.create_person(moderator)
    service.create_room(room, [moderator])
    bot = PokerBot(
        {"room": room, "moderator": moderator, "command_prefix": settings.command_prefix},
        BotContext(service=service, trace=LoguruTraceLogger()),
        debug=settings.debug,
    )
    service.connect(bot)
    return service, bot


async def _say(settings: Settings, messages: list[str], author: str, room: str) -> tuple[list[Message], Any]:
    service, bot = _build_session(settings, author, room)
    outbound: list[Message] = []

    def _collect(_sender: Any, *, message: Message, room: str) -> None:
        if message.author != author:
            outbound.append(message)

    service.message_sent.connect(_collect, weak=False)
    for content in messages:
        await service.dispatch_message_to_room(room, content, author)
    return outbound, bot.to_json()


@app.command()
def say(
    messages: list[str] = typer.Argument(..., help="Messages sent in order"),  # noqa: B008
    author: str = typer.Option("moderator", "--author", "-a", help="Message author (the moderator)"),
    room: str = typer.Option("planning", "--room", "-r", help="Room the messages are posted to"),
    debug: bool = typer.Option(False, "--debug", help="Trace matching and transitions"),
) -> None:
    """Run messages through the planning poker bot and print its replies."""

    settings = get_settings(debug=debug) if debug else get_settings()
    outbound, state = asyncio.run(_say(settings, messages, author, room))
    for message in outbound:
        typer.echo(f"[to {message.to or message.room}] {message.content}")
    typer.echo(json.dumps(state, ensure_ascii=False, indent=2, default=str))


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    moderator: str = typer.Option("moderator", "--moderator", help="Moderator of the sample bot"),
    room: str = typer.Option("planning", "--room", help="Room of the sample bot"),
) -> None:
    """Expose a harness service with the planning poker bot over HTTP."""

    settings = get_settings()
    service, _bot = _build_session(settings, moderator, room)
    serve_control(service, host=host or settings.control_host, port=port or settings.control_port)
