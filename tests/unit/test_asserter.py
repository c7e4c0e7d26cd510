"""Tests for the asserter."""

import asyncio
import logging
from collections.abc import Sequence
from unittest.mock import Mock

import pytest

from http_case_runner.asserter import Asserter
from http_case_runner.models.result import AssertionFailure


def test_fail_records_message() -> None:
    """fail() records one failure with the given message."""
    asserter = Asserter()

    asserter.fail("boom")

    assert asserter.errors == [AssertionFailure("boom")]


@pytest.mark.parametrize(
    ("value", "failures"),
    [(True, 0), (1, 0), ("x", 0), (False, 1), (0, 1), ("", 1), (None, 1)],
)
def test_ok(value: object, failures: int) -> None:
    """ok() fails only for falsy values."""
    asserter = Asserter()

    asserter.ok(value)

    assert len(asserter.errors) == failures


def test_equal_uses_custom_message() -> None:
    """equal() records the caller's message when given."""
    asserter = Asserter()

    asserter.equal(200, 200)
    asserter.equal(404, 200, "wrong status")

    assert asserter.errors == [AssertionFailure("wrong status")]


def test_equal_default_message() -> None:
    """equal() describes the mismatch by default."""
    asserter = Asserter()

    asserter.equal("a", "b")

    assert asserter.errors == [AssertionFailure("Expected 'b', got 'a'")]


def test_log_keeps_lines() -> None:
    """log() keeps each call as one line."""
    asserter = Asserter()

    asserter.log("status", 200)
    asserter.log("done")

    assert asserter.logs == [("status", 200), ("done",)]


def test_done_invokes_callback_once(caplog: pytest.LogCaptureFixture) -> None:
    """The completion callback runs on the first done() only."""
    callback = Mock()
    asserter = Asserter(callback)
    asserter.fail("boom")
    asserter.log("line")

    asserter.done()
    with caplog.at_level(logging.WARNING):
        asserter.done()

    assert asserter.completed
    callback.assert_called_once()
    errors: Sequence[AssertionFailure] = callback.call_args.args[0]
    assert errors == [AssertionFailure("boom")]
    assert callback.call_args.args[1] == [("line",)]
    assert "more than once" in caplog.text


async def test_wait_resumes_after_done() -> None:
    """wait() suspends until done() is called."""
    asserter = Asserter()
    waiter = asyncio.create_task(asserter.wait())

    await asyncio.sleep(0)
    assert not waiter.done()

    asserter.done()
    await asyncio.wait_for(waiter, timeout=1)

    assert asserter.completed
