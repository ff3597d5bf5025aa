"""Tests for the universe and reference-data phases."""

import pytest

from ticker_spine.core.errors import DataUnavailableError, UnsupportedIndexError
from ticker_spine.core.models import Dataset, ReferenceRecord
from ticker_spine.domain.reference import ReferenceRefresh, UniverseCatalog, UniverseRefresh
from ticker_spine.execution.batch import BatchExecutor
from ticker_spine.sources.protocol import StaticReferenceSource, StaticUniverseSource

LINK = "https://example.test/company?shareprice={}"


def record(symbol: str, **kwargs) -> ReferenceRecord:
    return ReferenceRecord(symbol=symbol, source_link=LINK.format(symbol), **kwargs)


class CountingUniverseSource(StaticUniverseSource):
    def __init__(self, symbols):
        super().__init__(symbols)
        self.calls: list[str] = []

    def fetch_symbols(self, index):
        self.calls.append(index)
        return super().fetch_symbols(index)


class BrokenLinkSource(StaticReferenceSource):
    """Lists one link more than it can serve."""

    def fetch_links(self, index):
        return super().fetch_links(index) + [LINK.format("GONE")]


class TestUniverseRefresh:
    def test_caches_every_index(self, cache):
        source = StaticUniverseSource({"FTSE_100": ["VOD", "BP.", "AAL"], "FTSE_250": ["III"]})

        universes = UniverseRefresh(source, cache, ["FTSE_100", "FTSE_250"]).run()

        assert universes["FTSE_100"].symbols == ("AAL", "BP.", "VOD")
        assert cache.read(Dataset.TICKERS.value) == {
            "FTSE_100": ["AAL", "BP.", "VOD"],
            "FTSE_250": ["III"],
        }

    def test_empty_universe_fails_and_caches_nothing(self, cache):
        source = StaticUniverseSource({"FTSE_100": ["VOD"]})

        with pytest.raises(DataUnavailableError):
            UniverseRefresh(source, cache, ["FTSE_100", "FTSE_250"]).run()

        assert cache.read(Dataset.TICKERS.value) is None

    def test_unknown_index_rejected(self, cache):
        with pytest.raises(UnsupportedIndexError):
            UniverseRefresh(StaticUniverseSource({}), cache, ["DOW_JONES"])


class TestUniverseCatalog:
    def test_prefers_cached_tickers(self, cache):
        source = CountingUniverseSource({"FTSE_100": ["NOT", "USED"]})
        cache.write(Dataset.TICKERS.value, {"FTSE_100": ["VOD", "BP."]})

        universe = UniverseCatalog(cache, source).get("ftse_100")

        assert universe.symbols == ("BP.", "VOD")
        assert source.calls == []

    def test_falls_back_to_source(self, cache):
        source = CountingUniverseSource({"FTSE_250": ["III"]})

        universe = UniverseCatalog(cache, source).get("FTSE_250")

        assert universe.symbols == ("III",)
        assert source.calls == ["FTSE_250"]


class TestReferenceRefresh:
    def test_fills_follow_up_link(self, cache):
        source = StaticReferenceSource({"FTSE_100": [record("VOD", attributes={"Revenue": [1.0, None]})]})

        ReferenceRefresh(source, cache, ["FTSE_100"]).run()

        [cached] = cache.read(Dataset.FUNDAMENTALS.value)["FTSE_100"]
        assert cached["symbol"] == "VOD"
        assert cached["follow_up_link"] == "https://www.google.com/finance/quote/VOD:LON?window=1Y"
        assert cached["attributes"] == {"Revenue": [1.0, None]}

    def test_existing_follow_up_link_is_kept(self, cache):
        source = StaticReferenceSource({"FTSE_100": [record("VOD", follow_up_link="https://x.test/VOD")]})

        ReferenceRefresh(source, cache, ["FTSE_100"]).run()

        [cached] = cache.read(Dataset.FUNDAMENTALS.value)["FTSE_100"]
        assert cached["follow_up_link"] == "https://x.test/VOD"

    def test_failed_pages_are_left_out(self, cache):
        source = BrokenLinkSource({"FTSE_100": [record("VOD"), record("BP.")]})
        refresh = ReferenceRefresh(
            source, cache, ["FTSE_100"], executor=BatchExecutor(max_workers=2)
        )

        results = refresh.run()

        assert results["FTSE_100"].succeeded == 2
        assert [key for key, _ in results["FTSE_100"].errors()] == ["GONE"]
        cached = cache.read(Dataset.FUNDAMENTALS.value)["FTSE_100"]
        assert [item["symbol"] for item in cached] == ["VOD", "BP."]

    def test_pacing_between_pages(self, cache, sleeper):
        source = StaticReferenceSource({"FTSE_100": [record("VOD"), record("BP.")]})
        executor = BatchExecutor(max_workers=1, delay_seconds=2.0, sleep=sleeper)

        ReferenceRefresh(source, cache, ["FTSE_100"], executor=executor).run()

        assert sleeper.calls == [2.0, 2.0]
