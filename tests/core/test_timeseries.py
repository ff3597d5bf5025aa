"""Tests for the durable price store backends."""

from datetime import date

import boto3
import pytest
from botocore.stub import ANY, Stubber

from ticker_spine.core.errors import StorageError
from ticker_spine.core.models import PricePoint
from ticker_spine.core.result import Err, Ok
from ticker_spine.core.timeseries import DynamoPriceStore, InMemoryPriceStore

TABLE = "TickerData"
DAY = date(2024, 3, 14)


@pytest.fixture
def dynamo_client():
    return boto3.client(
        "dynamodb",
        region_name="eu-west-2",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def point(symbol="VOD.L", price=72.5, day=DAY) -> PricePoint:
    return PricePoint(symbol=symbol, date=day, close_price=price)


class TestInMemoryPriceStore:
    def test_write_is_idempotent_per_key(self):
        store = InMemoryPriceStore()
        store.batch_write([point()])
        store.batch_write([point()])
        assert store.get("VOD.L", DAY) == [point()]
        assert len(store) == 1

    def test_missing_key_is_empty(self):
        assert InMemoryPriceStore().get("VOD.L", DAY) == []

    def test_batch_limit(self):
        store = InMemoryPriceStore()
        too_many = [point(day=date(2024, 1, 1).replace(day=i + 1)) for i in range(26)]
        with pytest.raises(StorageError):
            store.batch_write(too_many)

    def test_read_many_captures_failures_per_symbol(self):
        class HalfBroken(InMemoryPriceStore):
            def get(self, symbol, day):
                if symbol == "BAD.L":
                    raise StorageError("boom")
                return super().get(symbol, day)

        store = HalfBroken()
        store.batch_write([point()])

        results = store.read_many(["VOD.L", "BAD.L"], DAY)

        assert results["VOD.L"] == Ok([point()])
        assert isinstance(results["BAD.L"], Err)


class TestDynamoPriceStore:
    def test_item_shape(self):
        assert DynamoPriceStore.to_item(point()) == {
            "id": {"S": "VOD.L-2024-03-14"},
            "ticker": {"S": "VOD.L"},
            "date": {"S": "2024-03-14"},
            "price": {"N": "72.5"},
        }
        assert DynamoPriceStore.from_item(DynamoPriceStore.to_item(point())) == point()

    def test_batch_write_request(self, dynamo_client):
        store = DynamoPriceStore(TABLE, client=dynamo_client)
        with Stubber(dynamo_client) as stubber:
            stubber.add_response(
                "batch_write_item",
                {"UnprocessedItems": {}},
                {"RequestItems": {TABLE: [{"PutRequest": {"Item": DynamoPriceStore.to_item(point())}}]}},
            )
            store.batch_write([point()])
            stubber.assert_no_pending_responses()

    def test_unprocessed_items_are_resubmitted(self, dynamo_client, sleeper):
        store = DynamoPriceStore(TABLE, client=dynamo_client, sleep=sleeper)
        leftover = [{"PutRequest": {"Item": DynamoPriceStore.to_item(point("BP.L"))}}]
        with Stubber(dynamo_client) as stubber:
            stubber.add_response(
                "batch_write_item",
                {"UnprocessedItems": {TABLE: leftover}},
                {"RequestItems": ANY},
            )
            stubber.add_response(
                "batch_write_item",
                {"UnprocessedItems": {}},
                {"RequestItems": {TABLE: leftover}},
            )
            store.batch_write([point(), point("BP.L")])
            stubber.assert_no_pending_responses()
        assert sleeper.calls == [0.5]

    def test_unprocessed_items_give_up(self, dynamo_client, sleeper):
        store = DynamoPriceStore(TABLE, client=dynamo_client, unprocessed_retries=1, sleep=sleeper)
        leftover = [{"PutRequest": {"Item": DynamoPriceStore.to_item(point())}}]
        with Stubber(dynamo_client) as stubber:
            for _ in range(2):
                stubber.add_response("batch_write_item", {"UnprocessedItems": {TABLE: leftover}})
            with pytest.raises(StorageError):
                store.batch_write([point()])

    def test_client_error_becomes_storage_error(self, dynamo_client):
        store = DynamoPriceStore(TABLE, client=dynamo_client)
        with Stubber(dynamo_client) as stubber:
            stubber.add_client_error(
                "batch_write_item",
                service_error_code="ProvisionedThroughputExceededException",
                http_status_code=400,
            )
            with pytest.raises(StorageError):
                store.batch_write([point()])

    def test_get_queries_by_composite_key(self, dynamo_client):
        store = DynamoPriceStore(TABLE, client=dynamo_client)
        with Stubber(dynamo_client) as stubber:
            stubber.add_response(
                "query",
                {"Items": [DynamoPriceStore.to_item(point())], "Count": 1},
                {
                    "TableName": TABLE,
                    "KeyConditionExpression": "id = :id",
                    "ExpressionAttributeValues": {":id": {"S": "VOD.L-2024-03-14"}},
                },
            )
            assert store.get("VOD.L", DAY) == [point()]

    def test_get_absent_is_empty(self, dynamo_client):
        store = DynamoPriceStore(TABLE, client=dynamo_client)
        with Stubber(dynamo_client) as stubber:
            stubber.add_response("query", {"Items": [], "Count": 0})
            assert store.get("VOD.L", DAY) == []

    def test_get_error_becomes_storage_error(self, dynamo_client):
        store = DynamoPriceStore(TABLE, client=dynamo_client)
        with Stubber(dynamo_client) as stubber:
            stubber.add_client_error("query", service_error_code="InternalServerError", http_status_code=500)
            with pytest.raises(StorageError) as exc_info:
                store.get("VOD.L", DAY)
        assert exc_info.value.context.symbol == "VOD.L"
