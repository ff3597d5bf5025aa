"""
Lazy-initialised component container.

:class:`TickerSpineContainer` builds the storage backends, the price source,
the phases and the orchestrator from :class:`TickerSpineSettings` on first
access. Any collaborator can be passed in explicitly instead, which is how
tests run the whole pipeline against in-memory stores.

Usage::

    with TickerSpineContainer() as c:
        c.orchestrator.trigger("local")
        c.service.tickers("FTSE_100")
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import date
from typing import Any

import structlog

from ticker_spine.core.cache import TieredCache
from ticker_spine.core.dates import Today
from ticker_spine.core.object_store import InMemoryObjectStore, ObjectStore, S3ObjectStore
from ticker_spine.core.settings import TickerSpineSettings, get_settings
from ticker_spine.core.timeseries import DynamoPriceStore, InMemoryPriceStore, PriceStore
from ticker_spine.domain.heatmaps import HeatmapRefresh, HeatmapResolver
from ticker_spine.domain.prices import PriceRefresh
from ticker_spine.domain.reference import ReferenceRefresh, UniverseCatalog, UniverseRefresh
from ticker_spine.domain.service import DataService
from ticker_spine.execution.batch import BatchExecutor
from ticker_spine.execution.writer import BatchedWriter
from ticker_spine.framework.alerts import (
    AlertChannel,
    ConsoleChannel,
    EmailChannel,
    Notifier,
)
from ticker_spine.orchestration import CronScheduler, ErrorChannel, Orchestrator, Phase
from ticker_spine.sources.alpha_vantage import AlphaVantagePriceSource, listing_symbol
from ticker_spine.sources.protocol import (
    PriceSource,
    ReferenceSource,
    StaticReferenceSource,
    StaticUniverseSource,
    UniverseSource,
)

logger = structlog.get_logger(__name__)

LOCAL_PASS = "local"
FULL_PASS = "full"


def _secret(value: Any) -> str | None:
    return value.get_secret_value() if value is not None else None


class TickerSpineContainer:
    """Lazy component container; dispose with :meth:`close`."""

    def __init__(
        self,
        settings: TickerSpineSettings | None = None,
        *,
        object_store: ObjectStore | None = None,
        price_store: PriceStore | None = None,
        universe_source: UniverseSource | None = None,
        reference_source: ReferenceSource | None = None,
        price_source: PriceSource | None = None,
        channels: list[AlertChannel] | None = None,
        today: Today = date.today,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._object_store = object_store
        self._price_store = price_store
        self._universe_source = universe_source
        self._reference_source = reference_source
        self._price_source = price_source
        self._channels = channels
        self._today = today
        self._sleep = sleep

        self._error_channel = ErrorChannel()
        self._notifier: Notifier | None = None
        self._cache: TieredCache | None = None
        self._writer: BatchedWriter | None = None
        self._catalog: UniverseCatalog | None = None
        self._resolver: HeatmapResolver | None = None
        self._service: DataService | None = None
        self._orchestrator: Orchestrator | None = None
        self._scheduler: CronScheduler | None = None

    # ── Configuration ────────────────────────────────────────────

    @property
    def settings(self) -> TickerSpineSettings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def error_channel(self) -> ErrorChannel:
        return self._error_channel

    # ── Storage ──────────────────────────────────────────────────

    @property
    def object_store(self) -> ObjectStore:
        if self._object_store is None:
            s = self.settings
            if s.storage_backend == "aws":
                self._object_store = S3ObjectStore(
                    s.cache_bucket,
                    region=s.aws_region,
                    endpoint_url=s.aws_endpoint_url,
                    access_key=s.aws_access_key_id,
                    secret_key=_secret(s.aws_secret_access_key),
                )
            else:
                self._object_store = InMemoryObjectStore()
        return self._object_store

    @property
    def price_store(self) -> PriceStore:
        if self._price_store is None:
            s = self.settings
            if s.storage_backend == "aws":
                self._price_store = DynamoPriceStore(
                    s.price_table,
                    region=s.aws_region,
                    endpoint_url=s.aws_endpoint_url,
                    access_key=s.aws_access_key_id,
                    secret_key=_secret(s.aws_secret_access_key),
                )
            else:
                self._price_store = InMemoryPriceStore()
        return self._price_store

    @property
    def cache(self) -> TieredCache:
        if self._cache is None:
            self._cache = TieredCache(
                self.object_store,
                walkback_days=self.settings.cache_walkback_days,
                today=self._today,
                on_error=self._error_channel.report,
            )
        return self._cache

    @property
    def writer(self) -> BatchedWriter:
        if self._writer is None:
            self._writer = BatchedWriter(
                self.price_store,
                batch_size=self.settings.writer_batch_size,
                pacing_seconds=self.settings.writer_pacing_seconds,
                on_error=self._error_channel.report,
                sleep=self._sleep,
            )
        return self._writer

    # ── Sources ──────────────────────────────────────────────────

    @property
    def universe_source(self) -> UniverseSource:
        if self._universe_source is None:
            self._universe_source = StaticUniverseSource(self.settings.universe_symbols)
        return self._universe_source

    @property
    def reference_source(self) -> ReferenceSource:
        if self._reference_source is None:
            self._reference_source = StaticReferenceSource({})
        return self._reference_source

    @property
    def price_source(self) -> PriceSource:
        if self._price_source is None:
            s = self.settings
            self._price_source = AlphaVantagePriceSource(
                s.alpha_vantage_api_key.get_secret_value(),
                base_url=s.alpha_vantage_base_url,
                output_size=s.alpha_vantage_output_size,
                timeout=s.alpha_vantage_timeout_seconds,
                min_interval_seconds=s.alpha_vantage_min_interval_seconds,
                retry_wait_seconds=s.rate_limit_retry_wait_seconds,
                max_attempts=s.rate_limit_max_attempts,
                sleep=self._sleep,
            )
        return self._price_source

    # ── Domain ───────────────────────────────────────────────────

    @property
    def notifier(self) -> Notifier:
        if self._notifier is None:
            channels = self._channels if self._channels is not None else self._default_channels()
            self._notifier = Notifier(channels)
        return self._notifier

    def _default_channels(self) -> list[AlertChannel]:
        s = self.settings
        channels: list[AlertChannel] = []
        if s.notify_console:
            channels.append(ConsoleChannel())
        if s.smtp_host and s.notify_to:
            channels.append(
                EmailChannel(
                    "email",
                    s.smtp_host,
                    s.notify_from,
                    list(s.notify_to),
                    smtp_port=s.smtp_port,
                    smtp_user=s.smtp_username,
                    smtp_password=_secret(s.smtp_password),
                    use_tls=s.smtp_use_tls,
                )
            )
        return channels

    @property
    def catalog(self) -> UniverseCatalog:
        if self._catalog is None:
            self._catalog = UniverseCatalog(self.cache, self.universe_source)
        return self._catalog

    @property
    def resolver(self) -> HeatmapResolver:
        if self._resolver is None:
            s = self.settings
            self._resolver = HeatmapResolver(
                self.price_store,
                max_date_retries=s.heatmap_max_date_retries,
                anchor_lag_days=s.heatmap_anchor_lag_days,
                min_results=s.heatmap_min_results,
                store_symbol=listing_symbol,
                today=self._today,
            )
        return self._resolver

    @property
    def service(self) -> DataService:
        if self._service is None:
            self._service = DataService(self.cache, self.settings.indexes)
        return self._service

    def phases(self) -> dict[str, list[Phase]]:
        """Phases of the ``local`` and ``full`` passes, in run order."""
        s = self.settings
        local: list[Phase] = [
            UniverseRefresh(self.universe_source, self.cache, s.indexes),
            ReferenceRefresh(
                self.reference_source,
                self.cache,
                s.indexes,
                executor=BatchExecutor(
                    s.reference_concurrency,
                    delay_seconds=s.reference_fetch_delay_seconds,
                    sleep=self._sleep,
                    name="reference",
                ),
            ),
            HeatmapRefresh(self.resolver, self.catalog, self.cache, s.heatmap_indexes),
        ]
        prices = PriceRefresh(
            self.price_source,
            self.writer,
            self.catalog,
            s.price_indexes,
            notifier=self.notifier,
            days_to_restrict=s.price_days_to_restrict,
        )
        return {LOCAL_PASS: local, FULL_PASS: [*local, prices]}

    # ── Orchestration ────────────────────────────────────────────

    @property
    def orchestrator(self) -> Orchestrator:
        if self._orchestrator is None:
            self._orchestrator = Orchestrator(
                self.phases(),
                self.notifier,
                error_channel=self._error_channel,
                settle=[self.cache.flush],
            )
        return self._orchestrator

    @property
    def scheduler(self) -> CronScheduler:
        """Fires ``start_pass`` once at start, then ``scheduled_pass`` on the cron."""
        if self._scheduler is None:
            s = self.settings
            started = False

            def fire() -> None:
                nonlocal started
                pass_name = s.scheduled_pass if started else s.start_pass
                started = True
                self.orchestrator.trigger(pass_name)

            self._scheduler = CronScheduler(
                fire,
                s.schedule_cron,
                run_on_start=s.run_on_start,
            )
            if not s.run_on_start:
                started = True
        return self._scheduler

    # ── Lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        if self._scheduler is not None:
            self._scheduler.stop()
        if self._writer is not None:
            self._writer.close()
        if self._cache is not None:
            self._cache.close()
        close_source = getattr(self._price_source, "close", None)
        if callable(close_source):
            close_source()
        logger.info("container.closed")

    def __enter__(self) -> TickerSpineContainer:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


__all__ = ["LOCAL_PASS", "FULL_PASS", "TickerSpineContainer"]
