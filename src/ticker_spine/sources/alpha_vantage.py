"""
Alpha Vantage daily price source.

One ``TIME_SERIES_DAILY`` request per symbol, paced by a shared
``MinimumIntervalLimiter`` and retried on quota responses with a long,
constant wait.

Response classification:
    - HTTP 429, or a body with ``Information`` / ``Note``   -> RateLimitExceededError
    - empty body, ``Error Message``, other HTTP 4xx        -> DownstreamBadRequestError
    - HTTP 5xx or transport failure                        -> DownstreamUnavailableError
    - otherwise the ``Time Series (Daily)`` mapping

Response format::

    {
        "Meta Data": {...},
        "Time Series (Daily)": {
            "2024-01-05": {"1. open": "180.50", ..., "4. close": "180.80", ...},
            ...
        }
    }

Usage:
    source = AlphaVantagePriceSource(api_key="YOUR_KEY")
    result = source.fetch_prices("VOD")
    if result.is_ok():
        writer.push(result.unwrap())

Rate Limits:
    - Free tier: 5 requests/minute, 25 requests/day
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any

import httpx
import structlog

from ticker_spine.core.dates import parse_day
from ticker_spine.core.errors import (
    DownstreamBadRequestError,
    DownstreamUnavailableError,
    ErrorContext,
    RateLimitExceededError,
)
from ticker_spine.core.models import PricePoint
from ticker_spine.core.result import Result
from ticker_spine.execution.rate_limit import MinimumIntervalLimiter, RateLimitedFetcher
from ticker_spine.execution.retry import RetryExecutor, retry_on

logger = structlog.get_logger(__name__)

SOURCE_NAME = "alpha_vantage"
TIME_SERIES_KEY = "Time Series (Daily)"
CLOSE_KEY = "4. close"
LISTING_SUFFIX = ".L"


def listing_symbol(symbol: str) -> str:
    """Symbol as listed on the exchange, e.g. ``VOD`` -> ``VOD.L``.

    >>> listing_symbol("BT.")
    'BT.L'
    """
    if symbol.endswith(LISTING_SUFFIX):
        return symbol
    if symbol.endswith("."):
        return f"{symbol}L"
    return f"{symbol}{LISTING_SUFFIX}"


def classify_response(response: httpx.Response) -> Mapping[str, Any]:
    """Return the daily time series or raise the matching source error."""
    status = response.status_code
    context = ErrorContext(source=SOURCE_NAME, http_status=status)

    if status == 429:
        raise RateLimitExceededError("Alpha Vantage returned HTTP 429", context=context)
    if status >= 500:
        raise DownstreamUnavailableError(f"Alpha Vantage returned HTTP {status}", context=context)
    if status >= 400:
        raise DownstreamBadRequestError(f"Alpha Vantage returned HTTP {status}", context=context)

    try:
        body = response.json() if response.content else None
    except ValueError as e:
        raise DownstreamBadRequestError(
            "Alpha Vantage returned a non-JSON body", context=context, cause=e
        ) from e

    if not body or "Error Message" in body:
        raise DownstreamBadRequestError(
            f"Appear to have made a bad request to Alpha Vantage: {body!r}", context=context
        )
    if "Information" in body or "Note" in body:
        raise RateLimitExceededError(
            f"Appear to have exceeded the Alpha Vantage rate limit: {body!r}", context=context
        )

    series = body.get(TIME_SERIES_KEY)
    if not isinstance(series, Mapping):
        raise DownstreamBadRequestError(f"Missing {TIME_SERIES_KEY!r} in response", context=context)
    return series


def parse_time_series(
    symbol: str,
    series: Mapping[str, Mapping[str, Any]],
    *,
    days_to_restrict: int | None = None,
) -> list[PricePoint]:
    """Build price points from a daily series, most recent first.

    Rows with an unparseable date or close are skipped. ``days_to_restrict``
    keeps only the N most recent points.
    """
    points: list[PricePoint] = []
    for day, values in series.items():
        try:
            points.append(
                PricePoint(
                    symbol=symbol,
                    date=parse_day(day),
                    close_price=float(values[CLOSE_KEY]),
                )
            )
        except (KeyError, TypeError, ValueError):
            logger.debug("alpha_vantage.row_skipped", symbol=symbol, date=day)
            continue

    points.sort(key=lambda p: p.date, reverse=True)
    if days_to_restrict is not None:
        points = points[:days_to_restrict]
    return points


class AlphaVantagePriceSource:
    """Fetches closing prices for one symbol at a time."""

    DEFAULT_BASE_URL = "https://www.alphavantage.co/query"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        output_size: str = "full",
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
        limiter: MinimumIntervalLimiter | None = None,
        min_interval_seconds: float = 14.0,
        retry_wait_seconds: float = 86400.0,
        max_attempts: int = 3,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            api_key: Alpha Vantage API key.
            base_url: Query endpoint.
            output_size: ``full`` (20+ years) or ``compact`` (100 days).
            timeout: Request timeout in seconds.
            http_client: Client to use; one is created and owned if omitted.
            limiter: Pacing shared with other users of the same API key.
            min_interval_seconds: Pacing when no ``limiter`` is given.
            retry_wait_seconds: Wait after a quota response.
            max_attempts: Total attempts per symbol on quota responses.
            sleep: Used for pacing and retry waits.
        """
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.base_url = base_url
        self.output_size = output_size
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout)
        self.limiter = limiter or MinimumIntervalLimiter(
            min_interval_seconds,
            sleep=sleep,
            name=SOURCE_NAME,
        )
        self.fetcher: RateLimitedFetcher[Mapping[str, Any]] = RateLimitedFetcher(
            SOURCE_NAME,
            limiter=self.limiter,
            classify=classify_response,
            retry=RetryExecutor(
                retry_on(RateLimitExceededError),
                wait_seconds=retry_wait_seconds,
                max_attempts=max_attempts,
                sleep=sleep,
                name=f"{SOURCE_NAME}.fetch",
            ),
        )

    def fetch_prices(
        self,
        symbol: str,
        *,
        days_to_restrict: int | None = None,
    ) -> Result[list[PricePoint]]:
        """Fetch daily closes for ``symbol``, keyed by its listing symbol."""
        listed = listing_symbol(symbol)
        logger.info("alpha_vantage.fetching", symbol=listed)

        outcome = self.fetcher.fetch(lambda: self._request(listed))
        result = outcome.map(
            lambda series: parse_time_series(listed, series, days_to_restrict=days_to_restrict)
        )
        if result.is_ok():
            logger.info("alpha_vantage.fetched", symbol=listed, count=len(result.unwrap()))
        else:
            logger.warning("alpha_vantage.fetch_failed", symbol=listed, error=str(result.unwrap_err()))
        return result

    def _request(self, listed: str) -> httpx.Response:
        params = {
            "function": "TIME_SERIES_DAILY",
            "symbol": listed,
            "outputsize": self.output_size,
            "apikey": self.api_key,
        }
        try:
            return self._client.get(self.base_url, params=params)
        except httpx.TransportError as e:
            raise DownstreamUnavailableError(
                f"Could not reach Alpha Vantage: {e}",
                context=ErrorContext(source=SOURCE_NAME, symbol=listed),
                cause=e,
            ) from e

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


__all__ = [
    "SOURCE_NAME",
    "listing_symbol",
    "classify_response",
    "parse_time_series",
    "AlphaVantagePriceSource",
]
