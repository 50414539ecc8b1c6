"""Planning poker moderated by one user."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from chatflux.bot import Bot, BotContext
from chatflux.envelope import content_of, field_of
from chatflux.rules import Command, From, Rule, RuleBuilder
from chatflux.types import Action, Emit, Envelope, State

TASKLIST_RE = re.compile(r"teamwork\.com")
UNKNOWN_TASKLIST = "Uh oh, I don't recognize that tasklist!"


class PokerBot(Bot):
    def __init__(
        self,
        props: Mapping[str, Any] | None = None,
        context: BotContext | None = None,
        *,
        debug: bool | None = None,
    ) -> None:
        super().__init__(props, context, debug=debug)
        self.command_prefix: str = self.props.get("command_prefix", "")

        self.state = {
            "room": self.props.get("room"),
            "moderator": self.props.get("moderator"),
            "participants": list(self.props.get("participants", [])),
            "state": "waiting",
            "current_round": None,
            "rounds": {
                "pending": [],
                "completed": [],
                "skipped": [],
            },
        }

    def render(self) -> Rule:
        return self.render_moderator(self.state)

    def render_moderator(self, state: State) -> Rule:
        builder = RuleBuilder(From(user=state["moderator"]))
        builder.when(state["state"] == "waiting", self._command("plan", self.plan))
        builder.when(state["state"] == "ready", self._command("start", self.start))
        builder.add(
            self._command("add", self.add_user),
            self._command("remove", self.remove_user),
        )
        return builder.build()

    def reduce(self, state: State, action: Action, emit: Emit) -> State:
        if action.type == "PLAN":
            emit("planned")
            return {
                **state,
                "state": "ready",
                "tasklist": action.payload["tasklist"],
            }

        if action.type == "ADD_USER":
            user = action.payload["user"]
            if user in state["participants"]:
                return state
            emit("participant_added")
            return {**state, "participants": [*state["participants"], user]}

        if action.type == "REMOVE_USER":
            user = action.payload["user"]
            if user not in state["participants"]:
                return state
            emit("participant_removed")
            return {**state, "participants": [p for p in state["participants"] if p != user]}

        return state

    async def plan(self, message: Envelope) -> Any:
        content, author = content_of(message), field_of(message, "author")
        if TASKLIST_RE.search(content) is None:
            return await self.send_message({"content": UNKNOWN_TASKLIST, "to": author})

        # TODO: fetch the tasklist from the Teamwork API and build the pending rounds.
        return await self.dispatch("PLAN", {"tasklist": content})

    async def add_user(self, message: Envelope) -> Any:
        user = content_of(message).strip().lstrip("@")
        if not user:
            return None
        return await self.dispatch("ADD_USER", {"user": user})

    async def remove_user(self, message: Envelope) -> Any:
        user = content_of(message).strip().lstrip("@")
        if not user:
            return None
        return await self.dispatch("REMOVE_USER", {"user": user})

    async def start(self, message: Envelope) -> None:
        return None

    def _command(self, name: str, handler: Any) -> Command:
        return Command(command=name, prefix=self.command_prefix, handler=handler)
