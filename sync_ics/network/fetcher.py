"""
Feed fetcher for public iCalendar URLs.

Retrieves one feed body as text with a bounded timeout and a size ceiling.
There are no retries here; the orchestrator owns retry policy and uses the
FetchError.retryable flag to decide.
"""

import time
from typing import Optional
from urllib.parse import urlsplit

import requests
import structlog

from sync_ics.errors import FetchError
from sync_ics.metrics import feed_latency, feed_requests

logger = structlog.get_logger(__name__)

USER_AGENT = "sync-ics/1.0"
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
CHUNK_SIZE = 64 * 1024


def redact_url(url: str) -> str:
    """
    Reduce a feed URL to something safe to log.

    Feed paths and query strings embed private export tokens, so only the
    scheme and host survive.

    Example:
        >>> redact_url("https://www.airbnb.com/calendar/ical/123.ics?s=secret")
        'https://www.airbnb.com/…'
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        return "<invalid url>"
    return f"{parts.scheme}://{parts.hostname}/…"


def is_retryable_status(status_code: int) -> bool:
    """Rate limiting and server errors are worth another attempt."""
    return status_code == 429 or 500 <= status_code < 600


def _decode(body: bytes, content_type: str, declared: Optional[str]) -> str:
    # requests assumes ISO-8859-1 for text/* without a charset; feeds are UTF-8
    encoding = declared if declared and "charset=" in content_type.lower() else "utf-8"
    try:
        return body.decode(encoding, errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


def fetch_feed(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    max_bytes: int = DEFAULT_MAX_BYTES,
    platform: str = "other",
    session: Optional[requests.Session] = None,
) -> str:
    """
    Fetch a calendar feed and return its body as text.

    Args:
        url (str): Public feed address.
        timeout (float): Connect/read timeout in seconds.
        max_bytes (int): Body size ceiling; larger feeds are rejected.
        platform (str): Platform label, used for metrics and logs only.
        session (Optional[requests.Session]): Session to reuse; a plain
            requests.get is used when omitted.

    Returns:
        str: Decoded feed text.

    Raises:
        FetchError: On DNS/connection failure, timeout, non-2xx status,
            or a body exceeding max_bytes.
    """
    safe_url = redact_url(url)
    getter = session.get if session is not None else requests.get
    headers = {"User-Agent": USER_AGENT, "Accept": "text/calendar, text/plain, */*"}

    logger.debug("feed_fetch_started", platform=platform, url=safe_url)
    start_time = time.time()

    try:
        res = getter(url, headers=headers, timeout=timeout, stream=True)
    except requests.Timeout as err:
        feed_requests.labels(platform=platform, status_code="error").inc()
        raise FetchError(f"Timed out after {timeout:g}s fetching {safe_url}", retryable=True) from err
    except requests.RequestException as err:
        feed_requests.labels(platform=platform, status_code="error").inc()
        raise FetchError(
            f"Could not fetch {safe_url}: {type(err).__name__}", retryable=False
        ) from err

    try:
        feed_requests.labels(platform=platform, status_code=str(res.status_code)).inc()

        if not 200 <= res.status_code < 300:
            raise FetchError(
                f"HTTP {res.status_code} from {safe_url}",
                status_code=res.status_code,
                retryable=is_retryable_status(res.status_code),
            )

        declared = res.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise FetchError(
                f"Feed from {safe_url} is {declared} bytes, limit is {max_bytes}",
                status_code=res.status_code,
            )

        body = bytearray()
        try:
            for chunk in res.iter_content(chunk_size=CHUNK_SIZE):
                body.extend(chunk)
                if len(body) > max_bytes:
                    raise FetchError(
                        f"Feed from {safe_url} exceeds {max_bytes} bytes",
                        status_code=res.status_code,
                    )
        except requests.Timeout as err:
            raise FetchError(
                f"Timed out after {timeout:g}s reading {safe_url}", retryable=True
            ) from err
        except requests.RequestException as err:
            raise FetchError(
                f"Connection dropped while reading {safe_url}: {type(err).__name__}",
                retryable=True,
            ) from err
    finally:
        res.close()
        feed_latency.labels(platform=platform).observe(time.time() - start_time)

    text = _decode(bytes(body), res.headers.get("Content-Type", ""), res.encoding)

    logger.info("feed_fetched", platform=platform, url=safe_url, size=len(body))
    return text
