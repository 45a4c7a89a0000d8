import re

import pytest

from cfg_nl2sql.grammar.synthesizer import (
    EmptySchemaError,
    GrammarCollision,
    synthesize,
    terminal_name,
)
from cfg_nl2sql.schema.model import Column, Schema, Table


def _rule(grammar: str, name: str) -> str:
    match = re.search(rf"^{name}: (.*)$", grammar, re.MULTILINE)
    assert match, f"rule {name} missing"
    return match.group(1)


def _terminal_literals(grammar: str) -> dict[str, str]:
    return dict(re.findall(r'^(COL_[A-Z0-9_]+): "(.*)"$', grammar, re.MULTILINE))


def test_terminal_name_sanitizes_and_prefixes():
    assert terminal_name("shipping_limit_date") == "COL_SHIPPING_LIMIT_DATE"
    assert terminal_name("price-usd") == "COL_PRICE_USD"
    assert terminal_name("select") == "COL_SELECT"


def test_grammar_covers_exactly_schema_tables_and_columns():
    schema = Schema(
        tables=(
            Table("users", (Column("id", "Int64"), Column("name", "String"))),
            Table("events", (Column("id", "Int64"), Column("ts", "DateTime"))),
        )
    )

    grammar = synthesize(schema).grammar_text

    assert _rule(grammar, "table") == '"events" | "users"'
    literals = _terminal_literals(grammar)
    assert sorted(literals.values()) == ["id", "name", "ts"]
    assert _rule(grammar, "column") == "COL_ID | COL_NAME | COL_TS"


def test_duplicate_column_across_tables_emitted_once(order_items_schema):
    schema = Schema(
        tables=order_items_schema.tables
        + (Table("orders", (Column("order_id", "String"),)),)
    )

    grammar = synthesize(schema).grammar_text

    assert grammar.count('COL_ORDER_ID: "order_id"') == 1


def test_sanitized_collision_is_an_error():
    schema = Schema(
        tables=(Table("t", (Column("order-id", "String"), Column("order_id", "String"))),)
    )

    with pytest.raises(GrammarCollision) as excinfo:
        synthesize(schema)

    assert excinfo.value.terminal == "COL_ORDER_ID"
    assert set(excinfo.value.names) == {"order-id", "order_id"}


def test_synthesis_is_deterministic(order_items_schema):
    reordered = Schema(
        tables=(
            Table(
                "order_items",
                tuple(reversed(order_items_schema.tables[0].columns)),
            ),
        )
    )

    first = synthesize(order_items_schema)
    second = synthesize(order_items_schema)

    assert first.grammar_text == second.grammar_text
    assert first.grammar_text == synthesize(reordered).grammar_text


def test_fixed_productions_present(order_items_schema):
    grammar = synthesize(order_items_schema).grammar_text

    assert "start: select_stmt SEMI" in grammar
    assert _rule(grammar, "agg_func") == '"SUM" | "COUNT" | "AVG" | "MIN" | "MAX"'
    assert _rule(grammar, "compare_op") == "GTE | LTE | GT | LT | EQ | NEQ"
    assert 'limit_clause: "LIMIT" SP NUMBER' in grammar
    assert 'sort_dir: "ASC" | "DESC"' in grammar
    assert r"NUMBER: /[0-9]+(\.[0-9]+)?/" in grammar
    assert "DATETIME: /'[0-9]{4}-[0-9]{2}-[0-9]{2}( [0-9]{2}:[0-9]{2}:[0-9]{2})?'/" in grammar


def test_quotes_in_names_are_escaped():
    schema = Schema(tables=(Table('we"ird', (Column("a", "String"),)),))

    grammar = synthesize(schema).grammar_text

    assert _rule(grammar, "table") == r'"we\"ird"'


def test_capability_text_lists_columns_with_types(order_items_schema):
    capability = synthesize(order_items_schema).capability_text

    assert "## order_items" in capability
    for column in order_items_schema.tables[0].columns:
        assert f"- {column.name} ({column.type})" in capability
    assert "GROUP BY" in capability
    assert "ORDER BY columns (ASC/DESC)" in capability


def test_empty_schema_rejected():
    with pytest.raises(EmptySchemaError):
        synthesize(Schema())
    with pytest.raises(EmptySchemaError):
        synthesize(Schema(tables=(Table("empty"),)))
