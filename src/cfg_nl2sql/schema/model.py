"""In-memory schema model built from the Tinybird catalog."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Column:
    name: str
    type: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "type": self.type}


@dataclass(frozen=True)
class Table:
    """A datasource; column order is the catalog's insertion order."""

    name: str
    columns: tuple[Column, ...] = ()

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "columns": [column.to_dict() for column in self.columns],
        }


@dataclass(frozen=True)
class Schema:
    tables: tuple[Table, ...] = field(default_factory=tuple)

    @property
    def table_names(self) -> list[str]:
        return sorted({table.name for table in self.tables})

    @property
    def column_names(self) -> list[str]:
        """Distinct column names across all tables, sorted."""
        return sorted({column.name for table in self.tables for column in table.columns})

    def get_table(self, name: str) -> Table | None:
        for table in self.tables:
            if table.name == name:
                return table
        return None

    def user_hint(self) -> str:
        """Short, user-facing summary of what can be asked about."""
        if not self.tables:
            return "No data available."
        parts = sorted(
            f"{table.name} ({', '.join(sorted(table.column_names))})"
            for table in self.tables
        )
        return "Available data: " + "; ".join(parts)

    def to_dict(self) -> dict[str, object]:
        return {"tables": [table.to_dict() for table in self.tables]}
