"""Event names understood by State.subscribe() and State.emit()."""

from enum import StrEnum


class Event(StrEnum):
    """Closed set of events a state container can emit.

    ANY is a wildcard: its listeners receive every emission.
    """

    ANY = "*"
    INIT = "init"
    CLEAR = "clear"
    UPDATE = "update"
    VALIDATE = "validate"
