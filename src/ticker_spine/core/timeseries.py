"""
Durable daily price store.

Prices are keyed by ``(symbol, date)`` and written in small batches. A later
write for the same key overwrites the earlier one, so re-pushing a price is
idempotent. Reads return every record stored under a key; more than one
record means the store is inconsistent and callers treat the symbol as
ambiguous.

Backends:
    - ``InMemoryPriceStore``: dict-backed, for tests and ``storage_backend=memory``
    - ``DynamoPriceStore``: a DynamoDB table keyed by ``id = {symbol}-{date}``

Tags:
    storage, dynamodb, boto3, timeseries, prices
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from datetime import date
from decimal import Decimal
from typing import Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ticker_spine.core.dates import format_day, parse_day
from ticker_spine.core.errors import ErrorContext, StorageError
from ticker_spine.core.models import PricePoint, price_key
from ticker_spine.core.result import Result, try_result
from ticker_spine.core.settings import MAX_WRITE_BATCH_SIZE

logger = structlog.get_logger(__name__)


class PriceStore(ABC):
    """Abstract durable price store."""

    max_batch_size: int = MAX_WRITE_BATCH_SIZE

    @abstractmethod
    def batch_write(self, points: Sequence[PricePoint]) -> None:
        """Write up to ``max_batch_size`` points in one call.

        Raises:
            StorageError: if the batch could not be written.
        """
        ...

    @abstractmethod
    def get(self, symbol: str, day: date) -> list[PricePoint]:
        """Return the records stored for ``(symbol, day)``, usually zero or one.

        Raises:
            StorageError: if the read failed.
        """
        ...

    def read_many(self, symbols: Iterable[str], day: date) -> dict[str, Result[list[PricePoint]]]:
        """Read ``day`` for each symbol, capturing failures per symbol."""
        return {symbol: try_result(lambda s=symbol: self.get(s, day)) for symbol in symbols}

    def _check_batch(self, points: Sequence[PricePoint]) -> None:
        if len(points) > self.max_batch_size:
            raise StorageError(
                f"Batch of {len(points)} exceeds the limit of {self.max_batch_size} records"
            )


class InMemoryPriceStore(PriceStore):
    """Thread-safe dict-backed price store."""

    def __init__(self) -> None:
        self._points: dict[tuple[str, date], PricePoint] = {}
        self._lock = threading.Lock()
        self.batches_written = 0

    def batch_write(self, points: Sequence[PricePoint]) -> None:
        self._check_batch(points)
        with self._lock:
            for point in points:
                self._points[(point.symbol, point.date)] = point
            self.batches_written += 1

    def get(self, symbol: str, day: date) -> list[PricePoint]:
        with self._lock:
            point = self._points.get((symbol, day))
        return [] if point is None else [point]

    def __len__(self) -> int:
        with self._lock:
            return len(self._points)


class DynamoPriceStore(PriceStore):
    """
    DynamoDB-backed price store.

    Items look like ``{"id": "VOD.L-2024-03-01", "ticker": "VOD.L",
    "date": "2024-03-01", "price": 72.5}``. botocore retries throttled
    calls; items DynamoDB reports as unprocessed are resubmitted up to
    ``unprocessed_retries`` times before the batch is failed.
    """

    def __init__(
        self,
        table: str,
        *,
        region: str = "eu-west-2",
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        client: Any = None,
        unprocessed_retries: int = 3,
        unprocessed_backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.table = table
        self.unprocessed_retries = unprocessed_retries
        self.unprocessed_backoff_seconds = unprocessed_backoff_seconds
        self._sleep = sleep

        if client is None:
            client_kwargs: dict[str, Any] = {
                "service_name": "dynamodb",
                "region_name": region,
                "config": Config(retries={"max_attempts": 5, "mode": "standard"}),
            }
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            if access_key and secret_key:
                client_kwargs["aws_access_key_id"] = access_key
                client_kwargs["aws_secret_access_key"] = secret_key
            client = boto3.client(**client_kwargs)

        self.client = client
        logger.info("timeseries.dynamo_initialized", table=table, endpoint=endpoint_url)

    @staticmethod
    def to_item(point: PricePoint) -> dict[str, dict[str, str]]:
        return {
            "id": {"S": point.key},
            "ticker": {"S": point.symbol},
            "date": {"S": format_day(point.date)},
            "price": {"N": str(Decimal(str(point.close_price)))},
        }

    @staticmethod
    def from_item(item: dict[str, dict[str, str]]) -> PricePoint:
        return PricePoint(
            symbol=item["ticker"]["S"],
            date=parse_day(item["date"]["S"]),
            close_price=float(item["price"]["N"]),
        )

    def batch_write(self, points: Sequence[PricePoint]) -> None:
        self._check_batch(points)
        if not points:
            return

        requests = [{"PutRequest": {"Item": self.to_item(p)}} for p in points]
        attempt = 0
        while requests:
            try:
                response = self.client.batch_write_item(RequestItems={self.table: requests})
            except (BotoCoreError, ClientError) as e:
                raise StorageError(
                    f"Batch write to {self.table} failed: {e}",
                    context=ErrorContext(source="dynamodb", dataset=self.table),
                    cause=e,
                ) from e

            requests = response.get("UnprocessedItems", {}).get(self.table, [])
            if not requests:
                return

            attempt += 1
            if attempt > self.unprocessed_retries:
                raise StorageError(
                    f"{len(requests)} items left unprocessed after {attempt} attempts",
                    context=ErrorContext(source="dynamodb", dataset=self.table),
                )
            logger.warning(
                "dynamo_unprocessed_items",
                table=self.table,
                remaining=len(requests),
                attempt=attempt,
            )
            self._sleep(self.unprocessed_backoff_seconds * attempt)

    def get(self, symbol: str, day: date) -> list[PricePoint]:
        key = price_key(symbol, day)
        try:
            response = self.client.query(
                TableName=self.table,
                KeyConditionExpression="id = :id",
                ExpressionAttributeValues={":id": {"S": key}},
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(
                f"Query on {self.table} failed for {key}: {e}",
                context=ErrorContext(source="dynamodb", symbol=symbol, dataset=self.table),
                cause=e,
            ) from e
        return [self.from_item(item) for item in response.get("Items", [])]


__all__ = ["PriceStore", "InMemoryPriceStore", "DynamoPriceStore"]
