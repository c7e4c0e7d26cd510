"""Configuration for a test run."""

import re
import ssl
from pathlib import Path

from pydantic import Field, field_validator

from http_case_runner.models.base import Model

DEFAULT_TIMEOUT_SECS = 120
DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024


class RunnerConfig(Model):
    """Settings shared by discovery, test cases and the runner.

    Built once by the entry point and passed down explicitly.
    """

    base_url: str = Field(
        default="", description="Base URL that relative test targets are joined onto"
    )
    serial: bool = Field(
        default=False, description="Run the tests in serial instead of in parallel"
    )
    timeout_secs: float = Field(
        default=DEFAULT_TIMEOUT_SECS, gt=0, description="Global timeout, in seconds"
    )
    test_pattern: str = Field(
        default="",
        description="Case-insensitive regex; a test runs if its file or name matches",
    )
    cert_authority: Path | None = Field(
        default=None, description="File containing a custom CA for https requests"
    )
    max_body_bytes: int = Field(
        default=DEFAULT_MAX_BODY_BYTES,
        gt=0,
        description="Largest response body buffered for a single test case",
    )

    @field_validator("test_pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            re.compile(value, re.IGNORECASE)
        except re.error as exc:
            raise ValueError(f"Invalid test pattern {value!r}: {exc}") from exc
        return value

    def matcher(self) -> re.Pattern[str]:
        """Compile the test pattern; an empty pattern matches everything."""
        return re.compile(self.test_pattern, re.IGNORECASE)

    def ssl_context(self) -> ssl.SSLContext | None:
        """Build a TLS context trusting the custom CA, if one is configured."""
        if self.cert_authority is None:
            return None
        return ssl.create_default_context(cafile=str(self.cert_authority))
