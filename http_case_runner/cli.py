"""CLI entry point for the HTTP test runner."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from http_case_runner.config import (
    DEFAULT_MAX_BODY_BYTES,
    DEFAULT_TIMEOUT_SECS,
    RunnerConfig,
)
from http_case_runner.discovery import TestLoadError
from http_case_runner.results import ResultCollector
from http_case_runner.runner import TestRunner


def format_output(collector: ResultCollector) -> dict[str, Any]:
    """Format collected results for JSON output."""
    return {
        "total": collector.total,
        "passed": collector.passed,
        "failed": len(collector.failures),
        "elapsed_ms": collector.elapsed_ms,
        "failures": [
            {
                "file": failure.file,
                "name": failure.name,
                "errors": [error.message for error in failure.errors],
            }
            for failure in collector.failures
        ],
    }


async def run(
    files: Sequence[str], config: RunnerConfig, json_output: bool = False
) -> int:
    """Run the tests in ``files`` and return the exit code."""
    log = logging.getLogger("http_case_runner")

    runner = TestRunner(config=config)
    try:
        exit_code = await runner.run(files)
    except TestLoadError as exc:
        log.error("%s", exc)
        return 1

    if json_output:
        print(json.dumps(format_output(runner.collector), indent=2))
    return exit_code


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        description="Run HTTP integration tests defined in Python files"
    )
    parser.add_argument("files", nargs="+", help="Test files to load")
    parser.add_argument(
        "--base-url",
        default="",
        help="The base URL for sending requests",
    )
    parser.add_argument(
        "--serial",
        action="store_true",
        help="Run the tests in serial instead of in parallel",
    )
    parser.add_argument(
        "--timeout-secs",
        type=float,
        default=DEFAULT_TIMEOUT_SECS,
        help="The timeout, in seconds",
    )
    parser.add_argument(
        "--test-pattern",
        default="",
        help=(
            "A case-insensitive regular expression. "
            "Only tests whose file or name matches are run"
        ),
    )
    parser.add_argument(
        "--cert-authority",
        type=Path,
        default=None,
        help="File containing a custom CA for https requests",
    )
    parser.add_argument(
        "--max-body-bytes",
        type=int,
        default=DEFAULT_MAX_BODY_BYTES,
        help="Largest response body buffered per test",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print a JSON summary to stdout",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        config = RunnerConfig(
            base_url=args.base_url,
            serial=args.serial,
            timeout_secs=args.timeout_secs,
            test_pattern=args.test_pattern,
            cert_authority=args.cert_authority,
            max_body_bytes=args.max_body_bytes,
        )
    except ValidationError as exc:
        logging.getLogger("http_case_runner").error("Invalid configuration: %s", exc)
        sys.exit(2)

    exit_code = asyncio.run(run(args.files, config, json_output=args.json))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
