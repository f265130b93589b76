"""Listing scraper: fetch, retry and extract in one call."""

import logging
import time
from collections.abc import Callable

from price_monitor.fetchers import extractor
from price_monitor.fetchers.http import Fetcher
from price_monitor.fetchers.retry import RetryPolicy
from price_monitor.models import ErrorKind, HttpOutcome, ScrapeResult

logger = logging.getLogger(__name__)


class Scraper:
    """
    Composes Fetcher, extractor and RetryPolicy into fetch_listing(url).

    Failures never raise: every path ends in a ScrapeResult. A page that
    loads but has no recognisable price is a PARSE_ERROR and is not retried,
    since the page structure will not change between attempts.
    """

    def __init__(
        self,
        fetcher: Fetcher | None = None,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.fetcher = fetcher or Fetcher()
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def fetch_listing(self, url: str) -> ScrapeResult:
        """Fetch a listing page and extract its price, retrying transient failures."""
        max_attempts = self.policy.max_attempts
        attempt = 0
        outcome: HttpOutcome | None = None

        while attempt < max_attempts:
            attempt += 1
            outcome = self.fetcher.fetch(url, headers=self.fetcher.build_headers(url))

            if outcome.ok:
                return self._extract(url, outcome.text, attempt)

            kind = outcome.error
            if not self.policy.should_retry(kind, attempt):
                if kind.is_transient:
                    break
                logger.error(
                    "Permanent error on attempt %d/%d for %s: %s",
                    attempt, max_attempts, url, outcome.message,
                )
                return self._failure(url, kind, outcome.message, attempt)

            wait = self.policy.delay(attempt)
            if kind is ErrorKind.FORBIDDEN:
                logger.warning(
                    "HTTP 403 on attempt %d/%d - trying a different browser signature in %.1fs",
                    attempt, max_attempts, wait,
                )
            else:
                logger.warning(
                    "Temporary error on attempt %d/%d (%s): %s - retrying in %.1fs",
                    attempt, max_attempts, kind.value, outcome.message, wait,
                )
            self._sleep(wait)

        logger.error("All %d attempts failed for %s", attempt, url)
        message = outcome.message
        if outcome.error is ErrorKind.FORBIDDEN:
            message = f"HTTP 403 - site blocking automated access (tried {attempt} browser signatures)"
        return self._failure(url, outcome.error, message, attempt)

    def _extract(self, url: str, html: str, attempt: int) -> ScrapeResult:
        try:
            found = extractor.extract(html)
        except Exception as e:
            logger.error("Extraction crashed for %s: %s", url, e, exc_info=True)
            return ScrapeResult(
                url=url,
                success=False,
                error_kind=ErrorKind.PARSE_ERROR,
                error_message=f"Failed to parse page: {e}",
                html_snapshot=extractor.snapshot(html),
                attempts=attempt,
            )
        if found.price is None:
            logger.error("Could not extract price from %s", url)
            return ScrapeResult(
                url=url,
                success=False,
                mileage=found.mileage,
                description=found.description,
                error_kind=ErrorKind.PARSE_ERROR,
                error_message="Failed to extract price from page - price format may have changed",
                html_snapshot=extractor.snapshot(html),
                attempts=attempt,
            )
        return ScrapeResult(
            url=url,
            success=True,
            price=found.price,
            mileage=found.mileage,
            description=found.description,
            attempts=attempt,
        )

    @staticmethod
    def _failure(url: str, kind: ErrorKind, message: str, attempt: int) -> ScrapeResult:
        return ScrapeResult(
            url=url,
            success=False,
            error_kind=kind,
            error_message=message,
            attempts=attempt,
        )
