"""Tests for the test runner."""

import logging
from pathlib import Path

import aiohttp
import pytest
from aioresponses import aioresponses as aioresponses_cls

from http_case_runner.asserter import Asserter
from http_case_runner.case import TestCase
from http_case_runner.config import RunnerConfig
from http_case_runner.discovery import TestEntry
from http_case_runner.models.result import AssertionFailure
from http_case_runner.runner import TestRunner

CALLABLES_SOURCE = """
import asyncio

def passes(asserter):
    asserter.log("checked", 1)
    asserter.done()

def fails(asserter):
    asserter.fail("expected failure")
    asserter.done()

async def passes_later(asserter):
    await asyncio.sleep(0.01)
    asserter.done()

def raises(asserter):
    raise ValueError("bad test")

tests = {
    "passes": passes,
    "fails": fails,
    "passesLater": passes_later,
    "raises": raises,
}
"""

STUCK_SOURCE = """
def never_done(asserter):
    pass

tests = {"neverDone": never_done}
"""


@pytest.fixture
def callables_file(tmp_path: Path) -> str:
    """A test file exporting plain callables."""
    path = tmp_path / "callables.py"
    path.write_text(CALLABLES_SOURCE)
    return str(path)


@pytest.mark.parametrize("serial", [False, True])
async def test_runs_callables_and_collects_failures(
    callables_file: str, serial: bool, caplog: pytest.LogCaptureFixture
) -> None:
    """Passing and failing callables are recorded; exceptions become failures."""
    runner = TestRunner(config=RunnerConfig(serial=serial))

    with caplog.at_level(logging.INFO):
        exit_code = await runner.run([callables_file])

    assert exit_code == 1
    assert runner.collector.passed == 2
    failures = {f.name: f.errors for f in runner.collector.failures}
    assert failures == {
        "fails": (AssertionFailure("expected failure"),),
        "raises": (AssertionFailure("ValueError: bad test"),),
    }
    assert "4 test cases discovered, in 1 files." in caplog.text
    assert "FINISHED WITH 2 FAILURES" in caplog.text
    assert "checked 1" in caplog.text


async def test_pattern_limits_tests(callables_file: str) -> None:
    """Only matching tests run."""
    runner = TestRunner(config=RunnerConfig(test_pattern="^passes"))

    exit_code = await runner.run([callables_file])

    assert exit_code == 0
    assert runner.collector.passed == 2
    assert runner.collector.failures == []


async def test_timeout_fails_run(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """A test that never completes makes the run time out."""
    path = tmp_path / "stuck.py"
    path.write_text(STUCK_SOURCE)
    runner = TestRunner(config=RunnerConfig(timeout_secs=0.1))

    with caplog.at_level(logging.INFO):
        exit_code = await runner.run([str(path)])

    assert exit_code == 1
    assert "Tests timed out" in caplog.text
    assert "No errors" not in caplog.text


async def test_test_case_entry_uses_shared_session(
    aioresponses: aioresponses_cls,
) -> None:
    """TestCase entries get an asserter and the runner's session bound."""
    aioresponses.get("http://api.test/ping", status=200)
    case = TestCase("http://api.test/ping")
    runner = TestRunner(config=RunnerConfig())

    async with aiohttp.ClientSession() as session:
        await runner.run_entry(
            TestEntry(file="ping.py", name="ping", test=case), session
        )

    assert isinstance(case.asserter, Asserter)
    assert case.session is session
    assert case.response is not None
    assert runner.collector.passed == 1


async def test_test_case_with_own_config_keeps_own_session(
    aioresponses: aioresponses_cls,
) -> None:
    """A case carrying a different config is not bound to the shared session."""
    aioresponses.get("http://api.test/ping", status=200)
    case = TestCase("http://api.test/ping", config=RunnerConfig(max_body_bytes=64))
    runner = TestRunner(config=RunnerConfig())

    async with aiohttp.ClientSession() as session:
        await runner.run_entry(
            TestEntry(file="ping.py", name="ping", test=case), session
        )

    assert case.session is None
    assert case.response is not None
    assert runner.collector.passed == 1


async def test_test_case_transport_error_is_a_failure(
    aioresponses: aioresponses_cls,
) -> None:
    """A transport error fails the entry without failing the run early."""
    aioresponses.get(
        "http://api.test/ping", exception=aiohttp.ClientConnectionError("refused")
    )
    case = TestCase("http://api.test/ping")
    runner = TestRunner(config=RunnerConfig())

    async with aiohttp.ClientSession() as session:
        await runner.run_entry(
            TestEntry(file="ping.py", name="ping", test=case), session
        )

    [failure] = runner.collector.failures
    assert failure.errors == (
        AssertionFailure("Request for http://api.test/ping failed. refused"),
    )
