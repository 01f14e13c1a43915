"""State — a reactive container for one snapshot of value/errors/touched/busy.

Snapshots are immutable and replaced wholesale on every update().
Mutation and notification are separate steps: update() never notifies,
emit() does, so callers decide how many mutations make one notification.

    state = State(default_value="")
    unsubscribe = state.subscribe(Event.UPDATE, on_change)
    state.update(value="x", touched=True).emit(Event.UPDATE)
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, replace
from typing import Callable, Generic, TypeVar

from formhost.events import Event

E = TypeVar("E")
V = TypeVar("V")

Unsubscribe = Callable[[], None]


@dataclass(frozen=True, slots=True)
class StateProps(Generic[E, V]):
    """Immutable snapshot of a State."""

    value: V | None = None
    errors: E | None = None
    touched: bool = False
    busy: bool = False


Listener = Callable[[StateProps, Event, "str | None"], None]


class State(Generic[E, V]):
    """Holds a StateProps snapshot and the listeners subscribed to it."""

    __slots__ = ("_default_value", "_props", "_listeners")

    def __init__(self, default_value: V | None = None) -> None:
        self._default_value = default_value
        self._props: StateProps[E, V] = StateProps(value=default_value)
        self._listeners: dict[Event, list[Listener]] = {}

    @property
    def value(self) -> V | None:
        return self._props.value

    @property
    def errors(self) -> E | None:
        return self._props.errors

    @property
    def touched(self) -> bool:
        return self._props.touched

    @property
    def busy(self) -> bool:
        return self._props.busy

    def subscribe(self, event: Event | str, listener: Listener) -> Unsubscribe:
        """Register listener for event. Returns a function that removes it.

        The returned function removes this registration only; calling it
        again is a no-op even if listener was subscribed more than once.
        """
        group = self._listeners.setdefault(Event(event), [])
        group.append(listener)
        removed = False

        def _unsubscribe() -> None:
            nonlocal removed
            if removed:
                return
            removed = True
            group.remove(listener)

        return _unsubscribe

    def emit(self, event: Event | str, issuer: str | None = None) -> None:
        """Call listeners of event, then wildcard listeners, in registration order.

        The wildcard group is only walked once, even when emitting Event.ANY.
        Listeners (un)subscribed during the emission take effect on the next one.
        """
        event = Event(event)
        kinds = [event] if event is Event.ANY else [event, Event.ANY]
        listeners = [
            listener for kind in kinds for listener in self._listeners.get(kind, ())
        ]

        for listener in listeners:
            listener(self.get_props(), event, issuer)

    def update(self, **props) -> State[E, V]:
        """Shallow-merge props into a new snapshot. Does not notify."""
        self._props = replace(self._props, **props)
        return self

    def reset(self) -> State[E, V]:
        """Restore the default value and clear errors/touched/busy."""
        self._props = StateProps(value=self._default_value)
        return self

    def get_props(self) -> StateProps[E, V]:
        """Return a copy of the current snapshot.

        Container values (the host's value map, error lists) are copied
        too, so mutating the result never reaches internal state.
        """
        props = self._props
        return StateProps(
            value=copy.copy(props.value),
            errors=copy.copy(props.errors),
            touched=props.touched,
            busy=props.busy,
        )

    def __repr__(self) -> str:
        p = self._props
        return (
            f"State(value={p.value!r}, errors={p.errors!r}, "
            f"touched={p.touched}, busy={p.busy})"
        )
