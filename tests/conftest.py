"""Shared fixtures: validators with scripted outcomes and an event recorder."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from formhost import Host, HostOptions


@dataclass
class ValidatorCall:
    name: str
    value: object
    host_values: dict
    future: asyncio.Future = field(repr=False)


class ScriptedValidator:
    """Validator whose results are resolved by the test, one call at a time."""

    def __init__(self) -> None:
        self.calls: list[ValidatorCall] = []

    async def validate(self, name, value, host_values):
        future = asyncio.get_running_loop().create_future()
        self.calls.append(ValidatorCall(name, value, dict(host_values), future))
        return await future


class FailingValidator:
    """Validator that always raises."""

    def __init__(self) -> None:
        self.count = 0

    async def validate(self, name, value, host_values):
        self.count += 1
        raise RuntimeError("validator backend down")


class RuleValidator:
    """Validator returning errors from a {name: errors} table."""

    def __init__(self, rules: dict | None = None) -> None:
        self.rules = rules or {}
        self.calls: list[tuple] = []

    async def validate(self, name, value, host_values):
        self.calls.append((name, value, dict(host_values)))
        return self.rules.get(name)


class Recorder:
    """Listener collecting (event, issuer, props) triples."""

    def __init__(self) -> None:
        self.log: list[tuple] = []

    def __call__(self, props, event, issuer) -> None:
        self.log.append((event, issuer, props))

    @property
    def events(self) -> list:
        return [event for event, _, _ in self.log]

    @property
    def last(self):
        return self.log[-1][2]


async def drain(rounds: int = 10) -> None:
    """Let the event loop run pending callbacks without waiting on timers."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture()
def host() -> Host:
    return Host()


@pytest.fixture()
def scripted() -> ScriptedValidator:
    return ScriptedValidator()


@pytest.fixture()
def scripted_host(scripted) -> Host:
    return Host(HostOptions(debounce=20), validator=scripted)


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()
