"""Serial or parallel execution of test entries under a global deadline."""

import asyncio
import logging
from collections.abc import Callable, Coroutine, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeAlias, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

Mode: TypeAlias = Literal["serial", "parallel"]
EntryRunner: TypeAlias = Callable[[T], Coroutine[Any, Any, None]]


class RunTimeoutError(Exception):
    """Raised when the run does not complete before the deadline."""

    def __init__(self, timeout: float, pending: int) -> None:
        super().__init__(
            f"Tests did not complete within {timeout:g} seconds ({pending} pending)"
        )
        self.timeout = timeout
        self.pending = pending


@dataclass(kw_only=True)
class Scheduler(Generic[T]):
    """Runs entries one after another or all at once.

    Serial mode starts an entry only once the previous one completed. Parallel
    mode starts every entry before awaiting any of them. Either way the whole
    run shares a single deadline.
    """

    mode: Mode
    timeout: float
    started: list[asyncio.Task[None]] = field(default_factory=list, repr=False)

    async def run(
        self,
        entries: Sequence[T],
        run_entry: EntryRunner[T],
    ) -> None:
        """Run every entry and return once all have completed.

        Args:
            entries: Entries to run, in order
            run_entry: Runs one entry; must not raise for per-entry failures

        Raises:
            RunTimeoutError: If the deadline passes first. Entries still
                running are cancelled.

        """
        log.debug("Running %d entries in %s mode", len(entries), self.mode)
        try:
            async with asyncio.timeout(self.timeout):
                if self.mode == "serial":
                    await self._run_serial(entries, run_entry)
                else:
                    await self._run_parallel(entries, run_entry)
        except TimeoutError:
            raise RunTimeoutError(self.timeout, self.pending) from None

    @property
    def pending(self) -> int:
        """Entries started but not finished."""
        return sum(1 for task in self.started if not task.done() or task.cancelled())

    async def _run_serial(
        self, entries: Sequence[T], run_entry: EntryRunner[T]
    ) -> None:
        for entry in entries:
            task = asyncio.create_task(run_entry(entry))
            self.started.append(task)
            await task

    async def _run_parallel(
        self, entries: Sequence[T], run_entry: EntryRunner[T]
    ) -> None:
        async with asyncio.TaskGroup() as group:
            for entry in entries:
                self.started.append(group.create_task(run_entry(entry)))
