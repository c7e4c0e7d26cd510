"""Runs discovered tests and aggregates their outcome."""

import inspect
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

import aiohttp

from http_case_runner.asserter import Asserter
from http_case_runner.case import TestCase
from http_case_runner.config import RunnerConfig
from http_case_runner.discovery import TestEntry, discover
from http_case_runner.results import ResultCollector
from http_case_runner.scheduler import RunTimeoutError, Scheduler
from http_case_runner.transport import open_session

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class TestRunner:
    """Discovers, schedules and reports the tests in a set of files."""

    __test__ = False

    config: RunnerConfig
    collector: ResultCollector = field(default_factory=ResultCollector)

    async def run(self, files: Sequence[str]) -> int:
        """Run every selected test in ``files`` and return the exit code.

        Raises:
            TestLoadError: If a test file cannot be imported

        """
        discovery = discover(files, self.config)
        log.info(
            "%d test cases discovered, in %d files.",
            len(discovery.entries),
            discovery.file_count,
        )

        scheduler: Scheduler[TestEntry] = Scheduler(
            mode="serial" if self.config.serial else "parallel",
            timeout=self.config.timeout_secs,
        )

        async with open_session(self.config) as session:
            try:
                await scheduler.run(
                    discovery.entries,
                    lambda entry: self.run_entry(entry, session),
                )
            except RunTimeoutError as exc:
                log.error("FAILURE: Tests timed out, maybe done() was not called.")
                log.error("%s", exc)
                return 1

        self.collector.log_summary(log)
        return self.collector.exit_code

    async def run_entry(self, entry: TestEntry, session: aiohttp.ClientSession) -> None:
        """Run one entry and record its outcome once it signals completion.

        Exceptions raised by the test are recorded as failures of that test.
        """
        asserter = Asserter()
        try:
            await self._invoke(entry, asserter, session)
        except Exception as exc:
            log.debug("Test %s:%s raised", entry.file, entry.name, exc_info=exc)
            asserter.fail(f"{type(exc).__name__}: {exc}")
            if not asserter.completed:
                asserter.done()

        await asserter.wait()
        self.collector.record(entry, asserter.errors, asserter.logs)

    async def _invoke(
        self, entry: TestEntry, asserter: Asserter, session: aiohttp.ClientSession
    ) -> None:
        if isinstance(entry.test, TestCase):
            case = entry.test.set_asserter(asserter)
            # a case with its own config opens a session honouring its CA
            if case.session is None and case.config in (None, self.config):
                case.with_session(session)
            await case.run()
            return

        result = entry.test(asserter)
        if inspect.isawaitable(result):
            await result
