"""
Catastro – resilient HTTP fetcher

The OVC endpoints are intermittently slow and occasionally drop connections.
A request that fails at the transport level will often succeed on the next
try, so GETs are retried with exponential backoff (0.5s, 1s, 2s, ...).

HTTP error statuses are NOT retried and NOT raised: the caller gets the
response back and decides what a 500 means for its step.

The blocking `requests` call runs in a worker thread so each resolution
suspends on I/O without holding up other requests sharing the same pool.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass

import requests
from requests.adapters import HTTPAdapter

from catastro.config import FetcherConfig
from catastro.errors import UpstreamUnreachable

logger = logging.getLogger(__name__)

RETRYABLE_EXCEPTIONS = (
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
)

CONNECT_TIMEOUT = 5

_XML_ENCODING_RE = re.compile(rb"\s*<\?xml[^>]*\sencoding=[\"']([A-Za-z0-9._-]+)[\"']")


@dataclass(frozen=True)
class FetchResponse:
    status: int
    body: str
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def build_session(config: FetcherConfig) -> requests.Session:
    s = requests.Session()
    s.headers.update(config.header_dict())
    adapter = HTTPAdapter(pool_connections=config.pool_size, pool_maxsize=config.pool_size)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    # requests doesn't support a global timeout on Session; pass per-call
    return s


def backoff_delays(attempts: int, base: float = 0.5) -> list[float]:
    """Sleep before each retry: base, 2*base, 4*base, ..."""
    return [base * (2 ** i) for i in range(max(attempts - 1, 0))]


def _decode(r: requests.Response) -> str:
    # OVC omits the charset on some responses: XML declaration, then UTF-8, then requests' guess.
    if "charset=" in (r.headers.get("Content-Type") or "").lower():
        return r.text

    content = r.content
    m = _XML_ENCODING_RE.match(content)
    encoding = m.group(1).decode("ascii") if m else "utf-8"
    try:
        return content.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        fallback = r.apparent_encoding or "latin-1"
        logger.debug("body of %s is not %s, decoding as %s", r.url, encoding, fallback)
        return content.decode(fallback, errors="replace")


class Fetcher:
    """Shared client handle passed to every resolver."""

    def __init__(self, config: FetcherConfig | None = None, session: requests.Session | None = None):
        self.config = config or FetcherConfig()
        self._session = session or build_session(self.config)

    def _get(self, url: str, params: dict | None, timeout: float) -> FetchResponse:
        r = self._session.get(url, params=params, timeout=(CONNECT_TIMEOUT, timeout))
        return FetchResponse(status=r.status_code, body=_decode(r), url=r.url)

    async def fetch(
        self,
        url: str,
        params: dict | None = None,
        timeout: float = 15,
        max_attempts: int | None = None,
    ) -> FetchResponse:
        attempts = max(1, max_attempts or self.config.max_attempts)
        delays = backoff_delays(attempts, self.config.backoff_base)
        last_exc: Exception | None = None

        for attempt in range(attempts):
            logger.debug("GET %s params=%s (attempt %d/%d)", url, params, attempt + 1, attempts)
            try:
                return await asyncio.to_thread(self._get, url, params, timeout)
            except RETRYABLE_EXCEPTIONS as ex:
                last_exc = ex
                if attempt >= attempts - 1:
                    break
                logger.warning(
                    "transient network error on %s: %s - retrying in %.2fs", url, ex, delays[attempt]
                )
                await asyncio.sleep(delays[attempt])
            except requests.exceptions.RequestException as ex:
                # malformed URL, too many redirects etc.; retrying won't help
                raise UpstreamUnreachable(url, attempt + 1, ex) from ex

        raise UpstreamUnreachable(url, attempts, last_exc) from last_exc

    def close(self) -> None:
        self._session.close()

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()
