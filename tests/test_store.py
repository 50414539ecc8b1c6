from __future__ import annotations

import asyncio
from typing import Any

import pytest
from loguru import logger

from chatflux.envelope import field_of
from chatflux.errors import TransitionFailure
from chatflux.store import Store
from chatflux.types import Action, Mutation


def counter(state: dict[str, Any], action: Action, emit: Any) -> dict[str, Any]:
    if action.type == "INC":
        emit("incremented")
        return {**state, "count": state["count"] + 1}
    if action.type == "FAIL":
        emit("boom")
        return {**state, "count": -1}
    if action.type == "EXPLODE":
        raise ValueError("reducer exploded")
    return state


class RecordingStore(Store):
    def __init__(self, state: Any, **kwargs: Any) -> None:
        super().__init__(state, reducer=counter, **kwargs)
        self.events: list[tuple[str, Any]] = []

    async def transition(self, action: Action, current_state: Any, next_state: Any, mutation: Mutation) -> None:
        self.events.append(("start", mutation.type))
        await asyncio.sleep(0)
        if mutation.type == "boom":
            raise RuntimeError("transition exploded")
        self.events.append(("end", mutation.type))


@pytest.mark.asyncio
async def test_identity_reduction_is_a_noop() -> None:
    store = RecordingStore({"count": 0})
    state = store.state

    result = await store.dispatch("UNKNOWN")

    assert result is None
    assert store.state is state
    assert store.events == []
    assert store.transitioning is None


@pytest.mark.asyncio
async def test_dispatch_commits_after_transitions() -> None:
    store = RecordingStore({"count": 0})

    pending = store.dispatch("INC")
    assert store.transitioning is not None
    assert store.state == {"count": 0}

    result = await pending

    assert result == {"count": 1}
    assert store.state == {"count": 1}
    assert store.events == [("start", "incremented"), ("end", "incremented")]
    assert store.transitioning is None


@pytest.mark.asyncio
async def test_mutations_run_sequentially_in_emission_order() -> None:
    events: list[str] = []

    def reducer(state: int, action: Action, emit: Any) -> int:
        for name in ("a", "b", "c"):
            emit(name)
        return state + 1

    async def transition(action: Action, current: int, nxt: int, mutation: Mutation) -> None:
        events.append(f"start:{mutation.type}")
        # Later mutations finish faster; ordering must still hold.
        await asyncio.sleep({"a": 0.03, "b": 0.02, "c": 0.0}[mutation.type])
        events.append(f"end:{mutation.type}")

    store = Store(0, reducer=reducer, transition=transition)
    await store.dispatch("GO")

    assert events == ["start:a", "end:a", "start:b", "end:b", "start:c", "end:c"]


@pytest.mark.asyncio
async def test_transition_receives_action_states_and_mutation() -> None:
    seen: list[tuple[Any, ...]] = []

    def transition(action: Action, current: Any, nxt: Any, mutation: Mutation) -> None:
        seen.append((action, current, nxt, mutation))

    def reducer(state: Any, action: Action, emit: Any) -> Any:
        emit("default_payload")
        emit("explicit_none", None)
        emit("explicit", {"x": 1})
        return {"v": action.payload}

    store = Store({"v": None}, reducer=reducer, transition=transition)
    await store.dispatch("SET", 5)

    assert [m for *_, m in seen] == [
        Mutation("default_payload", 5),
        Mutation("explicit_none", None),
        Mutation("explicit", {"x": 1}),
    ]
    assert all(action == Action("SET", 5) for action, *_ in seen)
    assert all(current == {"v": None} and nxt == {"v": 5} for _, current, nxt, _ in seen)


@pytest.mark.asyncio
async def test_back_to_back_dispatches_are_serialized() -> None:
    store = RecordingStore({"count": 0})

    first = store.dispatch("INC")
    second = store.dispatch("INC")
    assert store.pending == 1

    await asyncio.gather(first, second)

    assert store.state == {"count": 2}
    assert store.events == [
        ("start", "incremented"),
        ("end", "incremented"),
        ("start", "incremented"),
        ("end", "incremented"),
    ]
    assert store.pending == 0


@pytest.mark.asyncio
async def test_queued_dispatches_are_fifo() -> None:
    def reducer(state: list[int], action: Action, emit: Any) -> list[int]:
        emit("appended")
        return [*state, action.payload]

    async def transition(*_args: Any) -> None:
        await asyncio.sleep(0)

    store = Store([], reducer=reducer, transition=transition)

    results = await asyncio.gather(*(store.dispatch("APPEND", n) for n in range(10)))

    assert store.state == list(range(10))
    assert results[-1] == list(range(10))
    assert [len(result) for result in results] == list(range(1, 11))


@pytest.mark.asyncio
async def test_queued_dispatch_resolves_only_after_its_own_commit() -> None:
    store = RecordingStore({"count": 0})

    first = store.dispatch("INC")
    second = store.dispatch("INC")

    await first
    assert not second.done() or store.state == {"count": 2}
    assert await second == {"count": 2}


@pytest.mark.asyncio
async def test_failed_transition_rejects_and_releases_queue() -> None:
    store = RecordingStore({"count": 0})

    failing = store.dispatch("FAIL")
    queued = store.dispatch("INC")

    results = await asyncio.gather(failing, queued, return_exceptions=True)

    assert isinstance(results[0], TransitionFailure)
    assert isinstance(results[0].__cause__, RuntimeError)
    assert results[0].mutation == Mutation("boom", None)
    assert results[1] == {"count": 1}
    assert store.state == {"count": 1}
    assert store.transitioning is None


@pytest.mark.asyncio
async def test_reducer_failure_rejects_without_wedging() -> None:
    store = RecordingStore({"count": 0})

    with pytest.raises(TransitionFailure) as exc_info:
        await store.dispatch("EXPLODE")

    assert isinstance(exc_info.value.__cause__, ValueError)
    assert store.transitioning is None
    assert await store.dispatch("INC") == {"count": 1}


@pytest.mark.asyncio
async def test_queued_noop_and_failures_do_not_strand_later_entries() -> None:
    store = RecordingStore({"count": 0})

    entries = [
        store.dispatch("INC"),
        store.dispatch("NOOP"),
        store.dispatch("EXPLODE"),
        store.dispatch("INC"),
    ]
    results = await asyncio.gather(*entries, return_exceptions=True)

    assert results[0] == {"count": 1}
    assert results[1] is None
    assert isinstance(results[2], TransitionFailure)
    assert results[3] == {"count": 2}
    assert store.pending == 0


@pytest.mark.asyncio
async def test_cancelled_queued_dispatch_is_skipped() -> None:
    store = RecordingStore({"count": 0})

    first = store.dispatch("INC")
    second = store.dispatch("INC")
    second.cancel()

    await first
    await asyncio.sleep(0)

    assert store.state == {"count": 1}
    assert store.pending == 0


@pytest.mark.asyncio
async def test_dispatch_passes_action_objects_through_unchanged() -> None:
    seen: list[Any] = []

    def reducer(state: Any, action: Any, emit: Any) -> Any:
        seen.append(action)
        emit("stamped")
        return {**state, "trace": field_of(action, "meta", {}).get("trace")}

    store = Store({"trace": None}, reducer=reducer)
    raw = {"type": "STAMP", "payload": 1, "meta": {"trace": "abc"}}

    assert await store.dispatch(raw) == {"trace": "abc"}
    assert seen == [raw]
    assert seen[0] is raw


@pytest.mark.asyncio
async def test_emit_defaults_to_the_payload_of_a_raw_action() -> None:
    mutations: list[Mutation] = []

    def reducer(state: Any, action: Any, emit: Any) -> Any:
        emit("seen")
        return {**state, "seen": True}

    def transition(action: Any, current: Any, next_state: Any, mutation: Mutation) -> None:
        mutations.append(mutation)

    store = Store({}, reducer=reducer, transition=transition)
    await store.dispatch({"type": "SEE", "payload": {"n": 1}})

    assert mutations == [Mutation("seen", {"n": 1})]


@pytest.mark.asyncio
async def test_dispatch_accepts_action_instances() -> None:
    store = RecordingStore({"count": 0})

    await store.dispatch(Action("INC"))

    assert store.state == {"count": 1}


@pytest.mark.asyncio
async def test_unawaited_failure_is_retrieved_and_logged() -> None:
    records: list[str] = []
    sink = logger.add(records.append, level="DEBUG", format="{message}")
    try:
        store = RecordingStore({"count": 0})
        failing = store.dispatch("FAIL")
        await asyncio.sleep(0.01)
    finally:
        logger.remove(sink)

    assert failing.done()
    assert store.transitioning is None
    assert any("dispatch.failed store=RecordingStore" in line for line in records)


@pytest.mark.asyncio
async def test_store_without_reducer_never_changes() -> None:
    store = Store({"a": 1})
    assert await store.dispatch("ANY") is None
    assert store.state == {"a": 1}
