"""Validator contract consumed by Host, and the pass-through default."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

# Error recorded on a source when its validator raises instead of returning.
FAILURE_MARKER = "🤒"


class Validator(Protocol):
    """Produces the error list for one source value.

    Domain failures are returned as a list of messages; an exception means
    the validator itself broke.
    """

    async def validate(
        self, name: str, value: Any, host_values: Mapping[str, Any]
    ) -> list[str] | None: ...


class NullValidator:
    """Accepts every value."""

    async def validate(
        self, name: str, value: Any, host_values: Mapping[str, Any]
    ) -> list[str] | None:
        return None
