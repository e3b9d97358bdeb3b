# encoding: utf-8
"""Multi-row INSERT statements with typed, numbered bind parameters."""
import dataclasses
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import bindparam, text
from sqlalchemy.sql.elements import TextClause
from sqlalchemy.types import TypeEngine


@dataclasses.dataclass(frozen=True)
class Placeholder:
    """One value slot of the row template.

    The rendered slot is ``prefix + :name + suffix``, which lets geometry
    columns wrap their bind parameter in a construction expression.
    """

    column: str
    type_: type[TypeEngine]
    prefix: str = ""
    suffix: str = ""

    @classmethod
    def geometry(
        cls,
        column: str,
        type_: type[TypeEngine],
        given_srid: int,
        target_srid: Optional[int] = None,
    ) -> "Placeholder":
        prefix = "ST_GeomFromWKB("
        suffix = f", {int(given_srid)})"
        if target_srid is not None and target_srid != given_srid:
            prefix = "ST_Transform(" + prefix
            suffix = suffix + f", {int(target_srid)})"
        return cls(column, type_, prefix, suffix)

    def render(self, bind_name: str) -> str:
        return self.prefix + ":" + bind_name + self.suffix


@dataclasses.dataclass(frozen=True)
class BoundValue:
    name: str
    type_: type[TypeEngine]
    value: Any


class InsertStatement:
    """Accumulates rows for a single ``INSERT ... VALUES (...), (...)``.

    :param table: Table name
    :param placeholders: Row template, one entry per inserted column
    :param quote: Callable quoting an identifier (Default value = double quotes)
    """

    def __init__(
        self,
        table: str,
        placeholders: Sequence[Placeholder],
        quote: Callable[[str], str] = None,
    ):
        quote = quote or _quote
        self.table = table
        self.placeholders = list(placeholders)
        columns = ", ".join(_escape(quote(p.column)) for p in self.placeholders)
        self.base = f"INSERT INTO {_escape(quote(table))} ({columns}) VALUES "
        self.groups: list[str] = []
        self.values: list[BoundValue] = []

    def __len__(self) -> int:
        return len(self.groups)

    def add_row(self, row: Sequence[Any]) -> None:
        """Append one row of values, in placeholder order."""
        if len(row) != len(self.placeholders):
            raise ValueError(
                f"Expected {len(self.placeholders)} values for {self.table}, got {len(row)}"
            )
        slots = []
        for placeholder, value in zip(self.placeholders, row):
            bound = BoundValue(f"p{len(self.values)}", placeholder.type_, value)
            self.values.append(bound)
            slots.append(placeholder.render(bound.name))
        self.groups.append("(" + ", ".join(slots) + ")")

    def reset(self) -> None:
        self.groups = []
        self.values = []

    @property
    def sql(self) -> str:
        return self.base + ", ".join(self.groups) + ";"

    def compile(self) -> TextClause:
        """Build the executable statement for the accumulated rows."""
        if not self.groups:
            raise ValueError(f"No rows to insert into {self.table}")
        return text(self.sql).bindparams(
            *[bindparam(v.name, v.value, type_=v.type_) for v in self.values]
        )

    def parameters(self) -> list[Any]:
        """Bound values in row-major order."""
        return [v.value for v in self.values]


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _escape(sql: str) -> str:
    # colons inside identifiers would otherwise read as bind parameters
    return sql.replace(":", "\\:")
