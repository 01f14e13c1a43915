"""Host — aggregates named sources into one reactive host state.

Every source is a State of its own. The host keeps a second-level State
whose snapshot is rebuilt from all sources after every mutation:

- value:   {name: source value}, minus values in options.filter_criteria
- errors:  {name: source errors} for sources with errors, else None
- touched: any source touched
- busy:    any source busy

Source updates go through a per-source debounce and then an asynchronous
validator. Every update issues a new validation token for its source; a
validation result is applied only if its token is still the latest one,
so slow responses for old values never overwrite newer state.

Usage:
    host = Host(HostOptions(debounce=300), validator=MyValidator())
    email = host.add_source("email", debounce=True)
    host.listen(Event.UPDATE, lambda props, event, issuer: render(props))
    host.init({"email": "a@b.com"})
    email.update("c@d.com")
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable, Coroutine, Iterable, Mapping

from formhost.debounce import Debouncer
from formhost.errors import HostError
from formhost.events import Event
from formhost.options import HostOptions
from formhost.state import Listener, State, StateProps, Unsubscribe
from formhost.validator import FAILURE_MARKER, NullValidator, Validator

logger = logging.getLogger("formhost.host")

SourceErrors = list[str]
HostErrors = dict[str, SourceErrors]


class SourceActions:
    """Actions bound to one registered source. Returned by Host.add_source()."""

    __slots__ = ("_host", "_name", "_update")

    def __init__(self, host: Host, name: str, update: Callable[[str, Any], None]) -> None:
        self._host = host
        self._name = name
        self._update = update

    @property
    def name(self) -> str:
        return self._name

    def listen(self, event: Event | str, listener: Listener) -> Unsubscribe:
        """Subscribe to this source's events."""
        return self._host.listen(event, listener, self._name)

    def update(self, value: Any) -> None:
        """Set a new value, debounced when the source was registered with debounce.

        The host turns busy right away, before the debounce window elapses.
        Raises RuntimeError, leaving all state untouched, when no event
        loop is running.
        """
        asyncio.get_running_loop()
        self._host.set_busy(True)
        self._update(self._name, value)

    def set_busy(self, busy: bool) -> None:
        self._host.set_busy(busy, [self._name])

    def set_errors(self, errors: SourceErrors | None) -> None:
        """Replace this source's errors. Other sources keep theirs."""
        self._host._set_source_errors(self._name, errors)

    def init(self, value: Any) -> None:
        """Reset this source to value immediately, without debounce or validation."""
        self._host._init_source(self._name, value)

    def __repr__(self) -> str:
        return f"SourceActions({self._name!r})"


class Host:
    """Owns the named source states and the aggregate host state."""

    def __init__(
        self,
        options: HostOptions | None = None,
        validator: Validator | None = None,
    ) -> None:
        self.options = options or HostOptions()
        self.validator: Validator = validator or NullValidator()
        self._host_state: State[HostErrors, dict] = State()
        self._sources: dict[str, State[SourceErrors, Any]] = {}
        self._debouncers: dict[str, Debouncer] = {}
        # Latest validation token per source. Tokens come from one counter
        # so they never repeat, even after a source is removed and re-added.
        self._validation_ids: dict[str, int] = {}
        self._tokens = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()

    # --- Sources ---

    def has_source(self, name: str) -> bool:
        return name in self._sources

    def add_source(
        self,
        name: str,
        default_value: Any = None,
        debounce: bool | float | None = None,
    ) -> SourceActions:
        """Register a source and return the actions bound to it.

        Args:
            name: Unique source name.
            default_value: Initial value, also restored by init()/reset.
            debounce: True for options.debounce milliseconds, a number for
                that many milliseconds, falsy to apply updates synchronously.

        Raises:
            HostError: if name is already registered.
        """
        if self.has_source(name):
            raise HostError(f'Source "{name}" is already registered')

        update: Callable[[str, Any], None] = self._update_source_value
        if debounce:
            delay = self.options.debounce if debounce is True else debounce
            debouncer = Debouncer(self._update_source_value, delay / 1000)
            self._debouncers[name] = debouncer
            update = debouncer

        self._sources[name] = State(default_value)
        logger.debug("Added source %r (debounce=%r)", name, debounce)
        return SourceActions(self, name, update)

    def remove_source(self, name: str) -> None:
        """Forget a source. Pending updates and validations for it are dropped.

        The host state is rebuilt without it and emits update, tagged with name.
        """
        if self._sources.pop(name, None) is None:
            return
        debouncer = self._debouncers.pop(name, None)
        if debouncer is not None:
            debouncer.cancel()
        self._validation_ids.pop(name, None)
        logger.debug("Removed source %r", name)
        self._rebuild_host_state().emit(Event.UPDATE, name)

    def listen(
        self,
        event: Event | str,
        listener: Listener,
        name: str | None = None,
    ) -> Unsubscribe:
        """Subscribe to a source by name, or to the host state when name is None.

        Raises:
            HostError: if name is given but not registered.
        """
        state = self._host_state if name is None else self._sources.get(name)
        if state is None:
            raise HostError(f'Failed to subscribe. No source with name "{name}" found.')
        return state.subscribe(event, listener)

    # --- Bulk operations ---

    def init(self, values: Mapping[str, Any] | None = None) -> None:
        """Reset every source, applying values[name] where given."""
        for name, state in self._each_source():
            self._drop_pending(name)
            state.reset()
            if values and name in values:
                state.update(value=values[name])
            state.emit(Event.INIT)

        self._rebuild_host_state().emit(Event.INIT)

    def clear(self) -> None:
        """Reset every source and set its value to None."""
        for name, state in self._each_source():
            self._drop_pending(name)
            state.reset().update(value=None).emit(Event.CLEAR)

        self._rebuild_host_state().emit(Event.CLEAR)

    def set_errors(self, errors: Mapping[str, SourceErrors | None] | None) -> None:
        """Replace the errors of every source. Sources missing from errors are cleared."""
        for name, state in self._each_source():
            err = errors.get(name) if errors else None
            state.update(errors=_copy_errors(err)).emit(Event.VALIDATE)

        self._rebuild_host_state().emit(Event.VALIDATE)

    def set_busy(self, busy: bool, names: Iterable[str] | None = None) -> None:
        """Set the busy flag on the host, or on the named sources.

        Without names only the host flag changes; source flags are kept.
        """
        if names is None:
            self._rebuild_host_state().update(busy=busy).emit(Event.VALIDATE)
            return

        names = set(names)
        changed = False
        for name, state in self._each_source():
            if name in names:
                state.update(busy=busy).emit(Event.VALIDATE)
                changed = True

        if changed:
            self._rebuild_host_state().emit(Event.VALIDATE)

    def get_state(self) -> State[HostErrors, dict]:
        return self._host_state

    # --- Validation ---

    def validate(
        self,
        callback: Callable[[StateProps], None] | None = None,
        name: str | None = None,
    ) -> asyncio.Task:
        """Validate one source, or all of them, and apply the results.

        Sources the validator returned no entry for keep their errors.
        Must be called with a running event loop. The returned task
        resolves to the host snapshot, which is also passed to callback.

        Raises:
            HostError: if name is given but not registered.
        """
        if name is not None and not self.has_source(name):
            raise HostError(f'Failed to validate. No source with name "{name}" found.')
        loop = asyncio.get_running_loop()

        self._host_state.update(busy=True).emit(Event.VALIDATE)

        targets = {name: self._sources[name]} if name is not None else dict(self._sources)
        # Validate the values as they are now, not when the task first runs.
        values = {target: state.value for target, state in targets.items()}
        return self._spawn(
            loop, self._validate(targets, values, self._host_values(), callback, name)
        )

    async def settle(self) -> None:
        """Wait until no debounced update or validation is pending.

        A validator that never completes makes this wait forever.
        """
        while True:
            pending = [task for task in self._tasks if not task.done()]
            pending.extend(d.task for d in self._debouncers.values() if d.pending)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def _validate(
        self,
        targets: dict[str, State],
        values: dict[str, Any],
        host_values: dict[str, Any],
        callback: Callable[[StateProps], None] | None,
        issuer: str | None,
    ) -> StateProps:
        results = await self._apply_validator(values, host_values)

        for name, state in self._each_source():
            if name in results and targets.get(name) is state:
                state.update(errors=results[name]).emit(Event.VALIDATE)

        self._rebuild_host_state().emit(Event.VALIDATE, issuer)
        props = self._host_state.get_props()
        if callback is not None:
            callback(props)
        return props

    # --- Internals ---

    def _init_source(self, name: str, value: Any) -> None:
        state = self._sources.get(name)
        if state is None:
            raise HostError(f'Failed to init. No source with name "{name}" found.')

        self._drop_pending(name)
        state.reset().update(value=value).emit(Event.INIT)
        self._rebuild_host_state().emit(Event.INIT, name)

    def _drop_pending(self, name: str) -> None:
        # A pending debounced value or in-flight validation would
        # overwrite the reset state.
        debouncer = self._debouncers.get(name)
        if debouncer is not None:
            debouncer.cancel()
        self._validation_ids[name] = next(self._tokens)

    def _set_source_errors(self, name: str, errors: SourceErrors | None) -> None:
        state = self._sources.get(name)
        if state is None:
            raise HostError(f'Failed to set errors. No source with name "{name}" found.')
        state.update(errors=_copy_errors(errors)).emit(Event.VALIDATE)
        self._rebuild_host_state().emit(Event.VALIDATE, name)

    def _update_source_value(self, name: str, value: Any) -> None:
        state = self._sources.get(name)
        if state is None:
            logger.debug("Dropped update for removed source %r", name)
            return
        loop = asyncio.get_running_loop()

        token = self._validation_ids[name] = next(self._tokens)
        state.update(value=value, busy=True, touched=True).emit(Event.UPDATE)
        self._rebuild_host_state().emit(Event.UPDATE, name)

        self._spawn(
            loop, self._validate_source(name, state, token, value, self._host_values())
        )

    async def _validate_source(
        self, name: str, state: State, token: int, value: Any, host_values: dict[str, Any]
    ) -> None:
        results = await self._apply_validator({name: value}, host_values)

        if self._validation_ids.get(name) != token:
            logger.debug("Discarded stale validation result for source %r", name)
            return

        state.update(errors=results[name], busy=False).emit(Event.UPDATE)
        self._rebuild_host_state().emit(Event.UPDATE, name)

    async def _apply_validator(
        self, values: Mapping[str, Any], host_values: Mapping[str, Any]
    ) -> dict[str, SourceErrors | None]:
        """Run the validator for every {name: value} concurrently. Returns {name: errors}."""
        names = list(values)
        results = await asyncio.gather(
            *(self._run_validator(name, values[name], host_values) for name in names)
        )
        return dict(zip(names, results))

    async def _run_validator(
        self, name: str, value: Any, host_values: Mapping[str, Any]
    ) -> SourceErrors | None:
        try:
            errors = await self.validator.validate(name, value, host_values)
        except Exception:
            logger.exception("Validator failed for source %r", name)
            return [FAILURE_MARKER]
        return _copy_errors(errors)

    def _rebuild_host_state(self) -> State[HostErrors, dict]:
        """Recompute the host snapshot from all sources. Does not notify."""
        criteria = self.options.filter_criteria
        value: dict[str, Any] = {}
        errors: HostErrors = {}
        touched = busy = False

        for name, state in self._sources.items():
            if state.value not in criteria:
                value[name] = state.value
            touched = touched or state.touched
            busy = busy or state.busy
            if state.errors is not None:
                errors[name] = state.errors

        return self._host_state.update(
            value=value,
            errors=errors or None,
            touched=touched,
            busy=busy,
        )

    def _host_values(self) -> dict[str, Any]:
        return dict(self._host_state.value or {})

    def _each_source(self) -> list[tuple[str, State[SourceErrors, Any]]]:
        # Listeners may add or remove sources while we iterate.
        return list(self._sources.items())

    def _spawn(self, loop: asyncio.AbstractEventLoop, coro: Coroutine) -> asyncio.Task:
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def __repr__(self) -> str:
        return f"Host(sources={list(self._sources)!r}, state={self._host_state!r})"


def _copy_errors(errors: Iterable[str] | None) -> SourceErrors | None:
    return None if errors is None else list(errors)
