"""Assertion sink handed to every test entry."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any, Protocol, TypeAlias

from http_case_runner.models.result import AssertionFailure

log = logging.getLogger(__name__)

LogLine: TypeAlias = tuple[Any, ...]
CompletionCallback: TypeAlias = Callable[
    [Sequence[AssertionFailure], Sequence[LogLine]], None
]


class AssertionSink(Protocol):
    """What a test case needs from whoever collects its outcome."""

    logs: list[LogLine]

    def fail(self, message: str) -> None:
        """Record a failure."""

    def done(self) -> None:
        """Signal that the test case is complete."""


class Asserter:
    """Collects failures and log lines for one test case.

    Completion is signalled once through ``done()``; the optional callback
    receives the collected errors and log lines at that moment.
    """

    __test__ = False

    def __init__(self, on_complete: CompletionCallback | None = None) -> None:
        self.errors: list[AssertionFailure] = []
        self.logs: list[LogLine] = []
        self._on_complete = on_complete
        self._completed = asyncio.Event()

    @property
    def completed(self) -> bool:
        """Whether ``done()`` has been called."""
        return self._completed.is_set()

    def fail(self, message: str) -> None:
        """Record an unconditional failure."""
        self.errors.append(AssertionFailure(message))

    def ok(self, value: object, message: str | None = None) -> None:
        """Fail unless ``value`` is truthy."""
        if not value:
            self.fail(message or f"Expected a truthy value, got {value!r}")

    def equal(
        self, actual: object, expected: object, message: str | None = None
    ) -> None:
        """Fail unless ``actual == expected``."""
        if actual != expected:
            self.fail(message or f"Expected {expected!r}, got {actual!r}")

    def log(self, *parts: Any) -> None:
        """Keep a diagnostic line, echoed after the test's pass/fail line."""
        self.logs.append(parts)

    def done(self) -> None:
        """Mark the test case as complete."""
        if self._completed.is_set():
            log.warning("done() called more than once, ignoring")
            return
        self._completed.set()
        if self._on_complete is not None:
            self._on_complete(self.errors, self.logs)

    async def wait(self) -> None:
        """Suspend until ``done()`` has been called."""
        await self._completed.wait()
