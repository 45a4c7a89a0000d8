from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

import pytest

from cfg_nl2sql.db.executor import QueryResult
from cfg_nl2sql.llm.base import SQLGenerator
from cfg_nl2sql.models.generation import SQLOutcome, UnsupportedOutcome
from cfg_nl2sql.schema.model import Column, Schema, Table

ORDER_ITEMS_CATALOG = {
    "datasources": [
        {
            "name": "order_items",
            "columns": [
                {"name": "order_id", "type": "String"},
                {"name": "order_item_id", "type": "Int32"},
                {"name": "product_id", "type": "String"},
                {"name": "seller_id", "type": "String"},
                {"name": "shipping_limit_date", "type": "DateTime"},
                {"name": "price", "type": "Float64"},
                {"name": "freight_value", "type": "Float64"},
            ],
        }
    ]
}


class StubClient:
    """Tinybird client stand-in answering from a path -> payload (or callable) map."""

    def __init__(self, responses: dict[str, Any]) -> None:
        self.responses = responses
        self.calls: list[tuple[str, dict[str, str] | None]] = []

    def get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        self.calls.append((path, params))
        response = self.responses[path]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params)
        return response


class FakeGenerator(SQLGenerator):
    """Answers by question text; records every reference time it is given."""

    def __init__(self, answers: dict[str, Any]) -> None:
        self.answers = answers
        self.reference_times: dict[str, datetime] = {}
        self.grammars: list[str] = []

    def generate(self, natural_language, grammar_text, capability_text, reference_time):
        self.reference_times[natural_language] = reference_time
        self.grammars.append(grammar_text)
        answer = self.answers[natural_language]
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(reference_time)
        return answer


class FakeExecutor:
    def __init__(self, results: dict[str, QueryResult | Exception]) -> None:
        self.results = results
        self.executed: list[str] = []

    def execute(self, sql: str) -> QueryResult:
        self.executed.append(sql)
        result = self.results[sql]
        if isinstance(result, Exception):
            raise result
        return result


def single_value(key: str, value: Any) -> QueryResult:
    return QueryResult(rows=[{key: value}], row_count=1)


@pytest.fixture
def order_items_schema() -> Schema:
    columns = tuple(
        Column(name=column["name"], type=column["type"])
        for column in ORDER_ITEMS_CATALOG["datasources"][0]["columns"]
    )
    return Schema(tables=(Table(name="order_items", columns=columns),))


@pytest.fixture
def stub_client_factory() -> Callable[[dict[str, Any]], StubClient]:
    return StubClient


@pytest.fixture
def sql_outcome() -> Callable[[str], SQLOutcome]:
    return lambda sql: SQLOutcome(sql=sql)


@pytest.fixture
def unsupported_outcome() -> Callable[[str], UnsupportedOutcome]:
    return lambda reason: UnsupportedOutcome(reason=reason)
