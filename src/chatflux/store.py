"""Serialized reduce/transition/commit dispatch engine."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections import deque
from collections.abc import Generator
from typing import Any

from loguru import logger

from chatflux.errors import TransitionFailure
from chatflux.logging_utils import NullTraceLogger, TraceLogger
from chatflux.snapshot import StateStack
from chatflux.envelope import field_of
from chatflux.types import Action, Mutation, QueuedDispatch, Reducer, State, TransitionHook, action_type, to_action

_UNSET: Any = object()


class Store:
    """Owns one state value and serializes every change to it.

    ``dispatch`` reduces synchronously, then awaits the transition hook once
    per emitted mutation, in emission order, before committing. While that
    pipeline is in flight further dispatches wait in a FIFO queue.
    """

    debug: bool = False

    def __init__(
        self,
        state: State = None,
        *,
        reducer: Reducer | None = None,
        transition: TransitionHook | None = None,
        debug: bool | None = None,
        trace: TraceLogger | None = None,
    ) -> None:
        self._state = state
        self._reducer = reducer
        self._transition_hook = transition
        self._queue: deque[QueuedDispatch] = deque()
        self._stack = StateStack()
        self.transitioning: asyncio.Task[Any] | None = None
        if debug is not None:
            self.debug = debug
        self.trace_logger: TraceLogger = trace or NullTraceLogger()

    @property
    def state(self) -> State:
        return self._state

    @state.setter
    def state(self, value: State) -> None:
        self._state = value

    @property
    def pending(self) -> int:
        """Number of dispatches waiting for the in-flight one."""
        return len(self._queue)

    def set_state(self, state: State) -> None:
        """Commit ``state`` as the live state."""
        self._state = state

    def reduce(self, state: State, action: Action, emit: Any) -> State:
        if self._reducer is None:
            return state
        return self._reducer(state, action, emit)

    def transition(self, action: Action, current_state: State, next_state: State, mutation: Mutation) -> Any:
        """A no-op transition unless a hook was supplied."""
        if self._transition_hook is None:
            return None
        return self._transition_hook(action, current_state, next_state, mutation)

    def dispatch(self, type_or_action: Any, payload: Any = None) -> asyncio.Future[Any]:
        """Dispatch an action given as ``(type, payload)`` or as one action object.

        Returns a future resolving to the committed state once all transitions
        are complete, or to ``None`` when the reducer returned the current state.
        Must be called from a running event loop.
        """

        action = to_action(type_or_action, payload)
        if self.transitioning is not None:
            future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            self._queue.append(QueuedDispatch(action=action, future=future))
            logger.debug("dispatch.queued store={} type={} pending={}", self, action_type(action), len(self._queue))
            future.add_done_callback(self._log_failure)
            return future
        return self._start(action)

    def push_state(self) -> int:
        return self._stack.push(self._state)

    def pop_state(self) -> None:
        self.set_state(self._stack.pop())

    @contextlib.contextmanager
    def checkpoint(self) -> Generator[State, None, None]:
        """Run a block speculatively; the state is rolled back on exit."""
        self.push_state()
        try:
            yield self._state
        finally:
            self.pop_state()

    def _start(self, action: Action) -> asyncio.Future[Any]:
        loop = asyncio.get_running_loop()
        mutations: list[Mutation] = []

        def emit(mutation_type: str, mutation_payload: Any = _UNSET) -> None:
            if mutation_payload is _UNSET:
                mutation_payload = field_of(action, "payload")
            mutations.append(Mutation(type=mutation_type, payload=mutation_payload))

        future: asyncio.Future[Any] = loop.create_future()
        try:
            next_state = self.reduce(self._state, action, emit)
        except Exception as exc:
            logger.opt(exception=True).warning("dispatch.reduce_failed store={} type={}", self, action_type(action))
            failure = TransitionFailure(action)
            failure.__cause__ = exc
            future.set_exception(failure)
            future.add_done_callback(self._log_failure)
            return future

        if next_state is self._state:
            future.set_result(None)
            return future

        task = loop.create_task(self._run_transitions(action, self._state, next_state, mutations))
        task.add_done_callback(self._log_failure)
        self.transitioning = task
        return task

    async def _run_transitions(
        self,
        action: Action,
        current_state: State,
        next_state: State,
        mutations: list[Mutation],
    ) -> State:
        try:
            for mutation in mutations:
                if self.debug:
                    self.trace_logger.trace(f"transition: {mutation.type}")
                try:
                    result = self.transition(action, current_state, next_state, mutation)
                    if inspect.isawaitable(result):
                        await result
                except Exception as exc:
                    logger.warning(
                        "dispatch.transition_failed store={} type={} mutation={}", self, action_type(action), mutation.type
                    )
                    raise TransitionFailure(action, mutation) from exc
            try:
                self.set_state(next_state)
            except Exception as exc:
                logger.warning("dispatch.commit_failed store={} type={}", self, action_type(action))
                raise TransitionFailure(action, stage="commit") from exc
            logger.debug("dispatch.commit store={} type={} mutations={}", self, action_type(action), len(mutations))
        finally:
            self.transitioning = None
            self._drain()
        return next_state

    def _drain(self) -> None:
        # Start queued entries until one is in flight again; no-op and failed
        # reductions settle immediately and must not strand the rest.
        while self._queue and self.transitioning is None:
            entry = self._queue.popleft()
            if entry.future.done():
                continue
            _chain(self._start(entry.action), entry.future)

    def _log_failure(self, future: asyncio.Future[Any]) -> None:
        # Retrieving the exception keeps asyncio quiet about dispatches nobody awaited.
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.debug("dispatch.failed store={} error={}", self, error)

    def __str__(self) -> str:
        return type(self).__name__


def _chain(source: asyncio.Future[Any], target: asyncio.Future[Any]) -> None:
    def _settle(done: asyncio.Future[Any]) -> None:
        if done.cancelled():
            target.cancel()
            return
        error = done.exception()
        if target.done():
            return
        if error is not None:
            target.set_exception(error)
        else:
            target.set_result(done.result())

    source.add_done_callback(_settle)
