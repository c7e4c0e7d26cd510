"""aiohttp session used to send test requests."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import aiohttp

from http_case_runner.config import RunnerConfig

# Test cases never time out on their own; the run-wide deadline covers them.
NO_TIMEOUT = aiohttp.ClientTimeout(total=None)


@asynccontextmanager
async def open_session(
    config: RunnerConfig,
) -> AsyncGenerator[aiohttp.ClientSession, None]:
    """Create a session honouring the configured CA, with managed lifecycle.

    Cookies from responses are not carried between test cases.
    """
    ssl_context = config.ssl_context()
    connector = aiohttp.TCPConnector(ssl=ssl_context if ssl_context else True)
    async with aiohttp.ClientSession(
        connector=connector,
        cookie_jar=aiohttp.DummyCookieJar(),
        timeout=NO_TIMEOUT,
    ) as session:
        yield session
