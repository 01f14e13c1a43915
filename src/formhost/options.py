"""Host configuration, frozen after creation."""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class HostOptions:
    """Configuration for a Host.

    Attributes:
        filter_criteria: Values dropped from the aggregate value map.
            Compared by identity or equality, so unhashable values work.
        debounce: Default debounce window in milliseconds, used by sources
            registered with ``debounce=True``.
    """

    filter_criteria: tuple = (None,)
    debounce: float = 500

    def __post_init__(self) -> None:
        if self.debounce < 0:
            raise ValueError(f"debounce must be >= 0, got {self.debounce!r}")
        # Accept any iterable, store a tuple so the options stay immutable.
        object.__setattr__(self, "filter_criteria", tuple(self.filter_criteria))
