"""Compile a Schema into a Lark CFG and a capability description.

The grammar is the only thing that constrains what the generation service can
emit, so it must name exactly the tables and columns of the live schema. Both
artifacts are pure functions of the schema: tables and columns are enumerated
in sorted order, so the same schema always yields byte-identical text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from cfg_nl2sql.schema.model import Schema

TERMINAL_PREFIX = "COL_"
AGGREGATE_FUNCTIONS = ("SUM", "COUNT", "AVG", "MIN", "MAX")
COMPARISON_OPERATORS = ("=", "!=", ">", "<", ">=", "<=")

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


class GrammarCollision(ValueError):
    """Raised when two distinct column names map to the same grammar terminal."""

    def __init__(self, terminal: str, names: tuple[str, str]) -> None:
        super().__init__(
            f"Columns {names[0]!r} and {names[1]!r} both map to terminal {terminal}."
        )
        self.terminal = terminal
        self.names = names


class EmptySchemaError(ValueError):
    """Raised when there are no tables or no columns to build a grammar from."""


@dataclass(frozen=True)
class GrammarBundle:
    """Grammar text plus the advisory description sent alongside it."""

    grammar_text: str
    capability_text: str
    table_names: tuple[str, ...]
    column_terminals: tuple[tuple[str, str], ...]


_HEADER = """\
// Auto-generated ClickHouse SQL grammar
// ---------- Whitespace ----------
SP: " "

// ---------- Punctuation ----------
COMMA: ","
SEMI: ";"
LPAREN: "("
RPAREN: ")"

// ---------- Operators ----------
GT: ">"
LT: "<"
GTE: ">="
LTE: "<="
EQ: "="
NEQ: "!="

// ---------- Start ----------
start: select_stmt SEMI

// ---------- SELECT statement ----------
select_stmt: "SELECT" SP select_list SP "FROM" SP table (SP where_clause)? (SP group_clause)? (SP order_clause)? (SP limit_clause)?

// ---------- Select list ----------
select_list: select_item (COMMA SP select_item)*
select_item: agg_expr | column | star
star: "*"

// ---------- Aggregation ----------
agg_expr: agg_func LPAREN agg_arg RPAREN (SP "AS" SP alias)?
agg_func: {agg_funcs}
agg_arg: column | star
alias: IDENTIFIER

"""

_FOOTER = """\
// ---------- WHERE clause ----------
where_clause: "WHERE" SP condition (SP "AND" SP condition)*
condition: column SP compare_op SP value
compare_op: GTE | LTE | GT | LT | EQ | NEQ
value: STRING | NUMBER | DATETIME

// ---------- GROUP BY ----------
group_clause: "GROUP" SP "BY" SP column (COMMA SP column)*

// ---------- ORDER BY ----------
order_clause: "ORDER" SP "BY" SP sort_item (COMMA SP sort_item)*
sort_item: column (SP sort_dir)?
sort_dir: "ASC" | "DESC"

// ---------- LIMIT ----------
limit_clause: "LIMIT" SP NUMBER

// ---------- Terminals ----------
IDENTIFIER: /[A-Za-z_][A-Za-z0-9_]*/
NUMBER: /[0-9]+(\\.[0-9]+)?/
STRING: /'[^']*'/
DATETIME: /'[0-9]{4}-[0-9]{2}-[0-9]{2}( [0-9]{2}:[0-9]{2}:[0-9]{2})?'/
"""

_OPERATIONS = """\
Supported operations:
- SELECT with columns or aggregates ({agg_funcs})
- WHERE with comparisons ({operators}) joined by AND
- GROUP BY columns
- ORDER BY columns (ASC/DESC)
- LIMIT

YOU MUST generate syntactically valid SQL that conforms to the grammar."""


def terminal_name(column_name: str) -> str:
    """Map a raw column name to its Lark terminal identifier."""
    return TERMINAL_PREFIX + _NON_ALNUM.sub("_", column_name).upper()


def _literal(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def column_terminals(schema: Schema) -> list[tuple[str, str]]:
    """Return sorted (terminal, raw name) pairs, rejecting collisions."""
    seen: dict[str, str] = {}
    for name in schema.column_names:
        terminal = terminal_name(name)
        if terminal in seen:
            raise GrammarCollision(terminal, (seen[terminal], name))
        seen[terminal] = name
    return list(seen.items())


def build_grammar(schema: Schema) -> str:
    table_names = schema.table_names
    terminals = column_terminals(schema)
    if not table_names:
        raise EmptySchemaError("Schema has no tables; refusing to build a grammar.")
    if not terminals:
        raise EmptySchemaError("Schema has no columns; refusing to build a grammar.")

    lines = [
        _HEADER.format(agg_funcs=" | ".join(_literal(f) for f in AGGREGATE_FUNCTIONS)),
        "// ---------- Tables ----------\n",
        "table: " + " | ".join(_literal(name) for name in table_names) + "\n\n",
        "// ---------- Columns ----------\n",
    ]
    lines.extend(f"{terminal}: {_literal(name)}\n" for terminal, name in terminals)
    lines.append("column: " + " | ".join(terminal for terminal, _ in terminals) + "\n\n")
    lines.append(_FOOTER)
    return "".join(lines)


def build_capability_text(schema: Schema) -> str:
    lines = ["Generates valid ClickHouse SQL queries.", "", "Available tables and columns:"]
    for table in sorted(schema.tables, key=lambda item: item.name):
        lines.append("")
        lines.append(f"## {table.name}")
        for column in sorted(table.columns, key=lambda item: item.name):
            lines.append(f"- {column.name} ({column.type})")
    lines.append("")
    lines.append(
        _OPERATIONS.format(
            agg_funcs=", ".join(AGGREGATE_FUNCTIONS),
            operators=", ".join(COMPARISON_OPERATORS),
        )
    )
    return "\n".join(lines)


def synthesize(schema: Schema) -> GrammarBundle:
    """Build the grammar and capability text for `schema`.

    Raises GrammarCollision or EmptySchemaError before anything is sent to the
    generation service.
    """
    grammar_text = build_grammar(schema)
    return GrammarBundle(
        grammar_text=grammar_text,
        capability_text=build_capability_text(schema),
        table_names=tuple(schema.table_names),
        column_terminals=tuple(column_terminals(schema)),
    )
