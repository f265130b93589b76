"""HTTP fetcher with rotating browser headers and failure classification."""

import errno
import logging
import random
from urllib.parse import urlsplit

import requests

from price_monitor.models import ErrorKind, HttpOutcome

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20.0
MAX_REDIRECTS = 5

USER_AGENTS = [
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
]

STATUS_KINDS = {
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    410: ErrorKind.GONE,
    429: ErrorKind.RATE_LIMITED,
}


def origin_of(url: str) -> str:
    """Return 'scheme://host/' for a URL."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.hostname}/"


def classify_status(status_code: int) -> ErrorKind | None:
    """
    Map an HTTP status to an ErrorKind, or None if the body should be parsed.

    Other 4xx pages are handed to the extractor like any page; without a
    price they end as a PARSE_ERROR after one attempt.
    """
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    return STATUS_KINDS.get(status_code)


def _walk_causes(exc: BaseException):
    """Yield exc and everything it wraps (chained causes, urllib3 reasons, args)."""
    seen: set[int] = set()
    stack: list[object] = [exc]
    while stack:
        current = stack.pop()
        if not isinstance(current, BaseException) or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        stack.extend(
            [current.__cause__, current.__context__, getattr(current, "reason", None), *current.args]
        )


def classify_exception(exc: BaseException) -> ErrorKind:
    """Map a transport-level exception to an ErrorKind."""
    for cause in _walk_causes(exc):
        if isinstance(cause, ConnectionRefusedError) or getattr(cause, "errno", None) == errno.ECONNREFUSED:
            return ErrorKind.CONNECTION_REFUSED
        if isinstance(cause, ConnectionResetError) or getattr(cause, "errno", None) == errno.ECONNRESET:
            return ErrorKind.CONNECTION_RESET

    # urllib3 often flattens the socket error into the message
    text = str(exc).lower()
    if "connection refused" in text:
        return ErrorKind.CONNECTION_REFUSED
    if "connection reset" in text:
        return ErrorKind.CONNECTION_RESET
    if isinstance(exc, (requests.exceptions.Timeout, TimeoutError)):
        return ErrorKind.TIMEOUT
    return ErrorKind.UNKNOWN


class Fetcher:
    """Issues GET requests that look like an ordinary browser visit."""

    def __init__(
        self,
        session: requests.Session | None = None,
        user_agents: list[str] | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        rng: random.Random | None = None,
    ) -> None:
        self.session = session or requests.Session()
        self.session.max_redirects = MAX_REDIRECTS
        self.user_agents = user_agents or USER_AGENTS
        self.timeout = timeout
        self._rng = rng or random.Random()

    def build_headers(self, url: str) -> dict[str, str]:
        """Fresh headers for one request: random User-Agent, referer set to the site origin."""
        return {
            "User-Agent": self._rng.choice(self.user_agents),
            "Accept": (
                "text/html,application/xhtml+xml,application/xml;q=0.9,"
                "image/avif,image/webp,image/apng,*/*;q=0.8"
            ),
            "Accept-Language": "en-GB,en;q=0.9,en-US;q=0.8",
            "Accept-Encoding": "gzip, deflate, br",
            "DNT": "1",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "none",
            "Cache-Control": "max-age=0",
            "Referer": origin_of(url),
        }

    def fetch(self, url: str, headers: dict[str, str] | None = None, timeout: float | None = None) -> HttpOutcome:
        """
        GET a URL and classify the outcome.

        Never raises for network or HTTP errors; they come back as an
        HttpOutcome carrying an ErrorKind.
        """
        if headers is None:
            headers = self.build_headers(url)
        try:
            resp = self.session.get(url, headers=headers, timeout=timeout or self.timeout)
        except requests.RequestException as e:
            kind = classify_exception(e)
            logger.debug("Fetch %s failed (%s): %s", url, kind.value, e)
            return HttpOutcome(error=kind, message=str(e))

        kind = classify_status(resp.status_code)
        if kind is not None:
            return HttpOutcome(
                status_code=resp.status_code,
                text=resp.text,
                error=kind,
                message=f"HTTP {resp.status_code}",
            )
        return HttpOutcome(status_code=resp.status_code, text=resp.text)
