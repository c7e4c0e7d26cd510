"""Loading of test files and selection of the tests to run."""

import hashlib
import importlib.util
import logging
import sys
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import TypeAlias

from http_case_runner.asserter import Asserter
from http_case_runner.case import TestCase
from http_case_runner.config import RunnerConfig

log = logging.getLogger(__name__)

EXPORT_NAME = "tests"

TestFn: TypeAlias = TestCase | Callable[[Asserter], Awaitable[None] | None]


class TestLoadError(Exception):
    """Raised when a test file cannot be loaded."""

    __test__ = False


@dataclass(frozen=True, kw_only=True)
class TestEntry:
    """A single test found in a test file."""

    __test__ = False

    file: str
    name: str
    test: TestFn


@dataclass(frozen=True, kw_only=True)
class Discovery:
    """Tests selected for a run."""

    entries: Sequence[TestEntry]
    file_count: int


def load_test_module(path: str | Path) -> ModuleType:
    """Import a test file by path.

    Each file gets a module name derived from its resolved path, so files
    sharing a basename do not clobber each other in ``sys.modules``.

    Raises:
        TestLoadError: If the file is missing or fails to import

    """
    resolved = Path(path).resolve()
    digest = hashlib.sha1(str(resolved).encode()).hexdigest()[:12]
    module_name = f"_http_case_runner_test_{resolved.stem}_{digest}"

    spec = importlib.util.spec_from_file_location(module_name, resolved)
    if spec is None or spec.loader is None:
        raise TestLoadError(f"Cannot load test file {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        del sys.modules[module_name]
        raise TestLoadError(f"Failed to import test file {path}: {exc}") from exc
    return module


def exported_tests(module: ModuleType) -> Mapping[str, TestFn]:
    """Return the tests a module exports.

    A module-level ``tests`` mapping takes precedence. Without one, every
    public module attribute holding a ``TestCase`` is exported, in definition
    order.
    """
    explicit = getattr(module, EXPORT_NAME, None)
    if isinstance(explicit, Mapping):
        return dict(explicit)

    return {
        name: value
        for name, value in vars(module).items()
        if not name.startswith("_") and isinstance(value, TestCase)
    }


def discover(files: Sequence[str], config: RunnerConfig) -> Discovery:
    """Load ``files`` in order and select the tests matching the test pattern.

    A test is selected when the pattern matches its name or its file. Test
    cases without a configuration of their own are bound to ``config``.

    Args:
        files: Test file paths, in the order they should run
        config: Run configuration supplying the pattern

    Returns:
        The selected tests and the number of files loaded

    """
    matcher = config.matcher()
    entries: list[TestEntry] = []

    for file in files:
        module = load_test_module(file)
        for name, test in exported_tests(module).items():
            if not matcher.search(name) and not matcher.search(file):
                continue
            if isinstance(test, TestCase) and test.config is None:
                test.with_config(config)
            entries.append(TestEntry(file=file, name=name, test=test))

    log.debug("Selected %d test(s) from %d file(s)", len(entries), len(files))
    return Discovery(entries=entries, file_count=len(files))
