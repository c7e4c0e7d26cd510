"""Collection and reporting of test outcomes."""

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from http_case_runner.asserter import LogLine
from http_case_runner.discovery import TestEntry
from http_case_runner.models.result import AssertionFailure, TestFailure

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class ResultCollector:
    """Records outcomes of completed entries for one run.

    Entries only record from their own completion, so appends never
    interleave; the summary is read after every entry has recorded.
    """

    failures: list[TestFailure] = field(default_factory=list)
    passed: int = 0
    started_at: float = field(default_factory=time.monotonic)

    def record(
        self,
        entry: TestEntry,
        errors: Sequence[AssertionFailure],
        logs: Sequence[LogLine] = (),
    ) -> None:
        """Record one entry's outcome and log its pass/fail line."""
        if errors:
            log.error("FAILURE %s %s", entry.file, entry.name)
            for error in errors:
                log.error("%s", error.message)
            self.failures.append(
                TestFailure(file=entry.file, name=entry.name, errors=tuple(errors))
            )
        else:
            log.info("SUCCESS %s %s", entry.file, entry.name)
            self.passed += 1

        if logs:
            log.info("Log Lines:")
            for line in logs:
                log.info("%s", " ".join(str(part) for part in line))
            log.info("---")

    @property
    def total(self) -> int:
        """Number of entries recorded."""
        return self.passed + len(self.failures)

    @property
    def elapsed_ms(self) -> int:
        """Milliseconds since the collector was created."""
        return round((time.monotonic() - self.started_at) * 1000)

    @property
    def exit_code(self) -> int:
        """Process exit code for the run."""
        return 1 if self.failures else 0

    def log_summary(self, logger: logging.Logger) -> None:
        """Log the elapsed time and either success or the failed tests."""
        elapsed = f"({self.elapsed_ms}ms)"
        if not self.failures:
            logger.info("No errors, good job! %s", elapsed)
            return

        logger.error("FINISHED WITH %d FAILURES %s", len(self.failures), elapsed)
        logger.error("Failed tests:")
        for failure in self.failures:
            logger.error("%s:%s", failure.file, failure.name)
