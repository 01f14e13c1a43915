"""formhost: reactive aggregation of named form sources with async validation."""

from importlib.metadata import version as _version

__version__ = _version("formhost")

from formhost.events import Event
from formhost.errors import HostError
from formhost.options import HostOptions
from formhost.state import State, StateProps
from formhost.debounce import Debouncer
from formhost.validator import FAILURE_MARKER, NullValidator, Validator
from formhost.host import Host, SourceActions

__all__ = [
    "Event",
    "HostError",
    "HostOptions",
    "State",
    "StateProps",
    "Debouncer",
    "FAILURE_MARKER",
    "NullValidator",
    "Validator",
    "Host",
    "SourceActions",
]
