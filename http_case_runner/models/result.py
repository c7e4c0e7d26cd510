"""Models for test execution results."""

from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class AssertionFailure:
    """A single failed expectation recorded against a test case."""

    message: str


@dataclass(frozen=True, kw_only=True)
class TestFailure:
    """Failure record for one test entry.

    Only failing entries are retained; passing entries are counted.
    """

    __test__ = False

    file: str
    name: str
    errors: Sequence[AssertionFailure]
