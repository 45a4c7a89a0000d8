import pytest
from lark import Lark
from lark.exceptions import UnexpectedInput

from cfg_nl2sql.grammar.synthesizer import synthesize
from cfg_nl2sql.schema.model import Column, Schema, Table


@pytest.fixture(scope="module")
def order_items_parser():
    schema = Schema(
        tables=(
            Table(
                "order_items",
                (
                    Column("order_id", "String"),
                    Column("seller_id", "String"),
                    Column("shipping_limit_date", "DateTime"),
                    Column("price", "Float64"),
                    Column("freight_value", "Float64"),
                ),
            ),
        )
    )
    return Lark(synthesize(schema).grammar_text, start="start")


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT COUNT(*) FROM order_items;",
        "SELECT SUM(price) FROM order_items;",
        "SELECT SUM(price) FROM order_items WHERE shipping_limit_date > '2024-06-08 12:00:00';",
        "SELECT COUNT(*) FROM order_items WHERE price > 100 AND freight_value <= 20.5;",
        "SELECT seller_id, SUM(price) AS revenue FROM order_items GROUP BY seller_id ORDER BY seller_id DESC LIMIT 5;",
        "SELECT * FROM order_items WHERE order_id = 'abc' LIMIT 10;",
    ],
)
def test_grammar_accepts_supported_queries(order_items_parser, sql):
    order_items_parser.parse(sql)


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT name FROM customers;",
        "SELECT nope FROM order_items;",
        "SELECT COUNT(*) FROM order_items",
        "SELECT SUM(price) FROM order_items; DROP TABLE order_items;",
        "SELECT MEDIAN(price) FROM order_items;",
        "SELECT price FROM order_items WHERE price LIKE '1%';",
    ],
)
def test_grammar_rejects_names_and_shapes_outside_schema(order_items_parser, sql):
    with pytest.raises(UnexpectedInput):
        order_items_parser.parse(sql)


def test_keyword_and_quoted_column_names_compile_and_parse():
    schema = Schema(
        tables=(Table("t", (Column("AND", "Int32"), Column('we"ird\\name', "String"))),)
    )
    parser = Lark(synthesize(schema).grammar_text, start="start")

    parser.parse("SELECT AND FROM t WHERE AND = 1;")
    parser.parse('SELECT we"ird\\name FROM t;')
    with pytest.raises(UnexpectedInput):
        parser.parse("SELECT weird FROM t;")
