# encoding: utf-8
import dataclasses
import decimal
import logging
import math
import re
from typing import Iterable, Optional, Union

from sqlalchemy import Boolean, Float, Integer, LargeBinary, Text
from sqlalchemy.types import TypeEngine

from pgfeatures.exceptions import SchemaError
from pgfeatures.lib.constants import DEFAULT_SRID
from pgfeatures.lib.statement import Placeholder
from pgfeatures.types import Category, ColumnType, PropertyValue

logger = logging.getLogger(__name__)

TYPE_CATEGORIES = {
    ColumnType.SMALLINT: Category.INT,
    ColumnType.INTEGER: Category.INT,
    ColumnType.BIGINT: Category.INT,
    ColumnType.DECIMAL: Category.FLOAT,
    ColumnType.NUMERIC: Category.FLOAT,
    ColumnType.REAL: Category.FLOAT,
    ColumnType.DOUBLE: Category.FLOAT,
    ColumnType.SMALLSERIAL: Category.INT,
    ColumnType.SERIAL: Category.INT,
    ColumnType.BIGSERIAL: Category.INT,
    ColumnType.VARCHAR: Category.STRING,
    ColumnType.CHAR: Category.STRING,
    ColumnType.TEXT: Category.STRING,
    ColumnType.BYTEA: Category.STRING,
    # temporal values are sent as text and parsed by the server
    ColumnType.TIMESTAMP: Category.STRING,
    ColumnType.TIMESTAMPTZ: Category.STRING,
    ColumnType.DATE: Category.STRING,
    ColumnType.TIME: Category.STRING,
    ColumnType.TIMETZ: Category.STRING,
    ColumnType.INTERVAL: Category.STRING,
    ColumnType.BOOLEAN: Category.BOOL,
    ColumnType.GEOMETRY: Category.GEOMETRY,
    ColumnType.HSTORE: Category.TAGMAP,
}

# alternative spellings, mostly as reported by information_schema.columns
TYPE_ALIASES = {
    "int": ColumnType.INTEGER,
    "int2": ColumnType.SMALLINT,
    "int4": ColumnType.INTEGER,
    "int8": ColumnType.BIGINT,
    "float4": ColumnType.REAL,
    "float8": ColumnType.DOUBLE,
    "double": ColumnType.DOUBLE,
    "serial4": ColumnType.SERIAL,
    "serial8": ColumnType.BIGSERIAL,
    "character varying": ColumnType.VARCHAR,
    "character": ColumnType.CHAR,
    "bpchar": ColumnType.CHAR,
    "bool": ColumnType.BOOLEAN,
    "timestamp": ColumnType.TIMESTAMP,
    "timestamptz": ColumnType.TIMESTAMPTZ,
    "time": ColumnType.TIME,
    "timetz": ColumnType.TIMETZ,
    "hstore_tags": ColumnType.HSTORE,
}

BIND_TYPES: dict[Category, type[TypeEngine]] = {
    Category.INT: Integer,
    Category.FLOAT: Float,
    Category.STRING: Text,
    Category.BOOL: Boolean,
    Category.GEOMETRY: LargeBinary,
    Category.TAGMAP: Text,
}

_MODIFIER = re.compile(r"\s*\(.*\)\s*$")


def normalise_type(logical_type: Union[ColumnType, str]) -> str:
    """Lower case a type token and drop its modifier, e.g. ``varchar(32)``."""
    return _MODIFIER.sub("", str(logical_type)).strip().lower()


def category_of(logical_type: Union[ColumnType, str]) -> Optional[Category]:
    """Find the value category for a column type.

    :param logical_type: A ColumnType or a raw type token
    :returns: The category, or None if the type is unknown
    """
    token = normalise_type(logical_type)
    if token in TYPE_ALIASES:
        return TYPE_CATEGORIES[TYPE_ALIASES[token]]
    try:
        return TYPE_CATEGORIES[ColumnType(token)]
    except ValueError:
        return None


def coerce(value: PropertyValue, category: Category) -> PropertyValue:
    """Convert a property value to the given category.

    Never raises: unparsable strings become 0 or 0.0 and any conversion not
    listed below becomes None.

    ========  ========  ===================================
    from      to        rule
    ========  ========  ===================================
    int       string    decimal string
    int       float     widen
    float     int       truncate toward zero
    float     string    positional notation, shortest digits
    string    int       parse, 0 on failure
    string    float     parse, 0.0 on failure
    ========  ========  ===================================
    """
    if value is None:
        return None

    if isinstance(value, bool):
        return value if category is Category.BOOL else None

    if isinstance(value, int):
        if category is Category.INT:
            return value
        if category is Category.FLOAT:
            try:
                return float(value)
            except OverflowError:
                return None
        if category is Category.STRING:
            return str(value)
        return None

    if isinstance(value, float):
        if category is Category.FLOAT:
            return value
        if category is Category.INT:
            if not math.isfinite(value):
                return None
            return int(value)
        if category is Category.STRING:
            return _positional(value)
        return None

    if isinstance(value, str):
        if category is Category.STRING:
            return value
        if category is Category.INT:
            try:
                return int(value)
            except ValueError:
                return 0
        if category is Category.FLOAT:
            try:
                return float(value)
            except ValueError:
                return 0.0
        return None

    return None


def _positional(value: float) -> str:
    if not math.isfinite(value):
        return str(value)
    return format(decimal.Decimal(repr(value)), "f")


@dataclasses.dataclass(frozen=True)
class Column:
    """A column declaration.

    :param name: Column name, unique within the table
    :param type: ColumnType or raw type token
    :param given_srid: SRID of incoming geometries (geometry columns only)
    :param target_srid: SRID the geometries are stored in (geometry columns only)
    :param tags: Properties aggregated by a tag-map column
    """

    name: str
    type: Union[ColumnType, str]
    given_srid: Optional[int] = None
    target_srid: Optional[int] = None
    tags: tuple[str, ...] = ()

    @property
    def category(self) -> Optional[Category]:
        return category_of(self.type)

    def with_srids(self, default_srid: int) -> "Column":
        """Return a copy with unset SRIDs resolved to the default."""
        return dataclasses.replace(
            self,
            given_srid=self.given_srid or default_srid,
            target_srid=self.target_srid or default_srid,
        )

    @property
    def ddl_type(self) -> str:
        if self.category is Category.TAGMAP:
            return ColumnType.HSTORE.value
        return str(self.type)


@dataclasses.dataclass(frozen=True)
class StoredColumn:
    column: Column
    category: Category

    @property
    def name(self) -> str:
        return self.column.name


class TableSchema:
    """Validated, compiled column list for one table.

    Columns folded into the tag map are neither created nor inserted.

    :param name: Table name
    :param columns: Declared columns, in order
    :param srid: Default SRID for geometry columns (Default value = 4326)
    :param strict: Reject unknown column types; otherwise treat them as text
    """

    def __init__(
        self,
        name: str,
        columns: Iterable[Column],
        srid: int = DEFAULT_SRID,
        strict: bool = True,
    ):
        self.name = name
        self.columns: list[Column] = list(columns)
        if not self.columns:
            raise SchemaError({name: "A table needs at least one column"})

        seen = set()
        for column in self.columns:
            if column.name in seen:
                raise SchemaError({column.name: "Duplicate column name"})
            seen.add(column.name)
            if column.tags and column.category is not Category.TAGMAP:
                raise SchemaError(
                    {column.name: "Only a tag-map (hstore) column can aggregate tags"}
                )

        tag_maps = [c for c in self.columns if c.category is Category.TAGMAP]
        if len(tag_maps) > 1:
            raise SchemaError(
                {c.name: "Only one tag-map column is allowed" for c in tag_maps}
            )
        self.tag_map: Optional[Column] = tag_maps[0] if tag_maps else None
        self.tags: tuple[str, ...] = self.tag_map.tags if self.tag_map else ()

        self.stored: list[StoredColumn] = []
        for column in self.columns:
            if column.name in self.tags:
                continue
            category = column.category
            if category is None:
                if strict:
                    raise SchemaError(
                        {column.name: f"Unknown column type {column.type!r}"}
                    )
                logger.debug(f"Treating {column.name} ({column.type}) as text")
                category = Category.STRING
            if category is Category.GEOMETRY:
                column = column.with_srids(srid)
            self.stored.append(StoredColumn(column, category))

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.stored]

    @property
    def has_geometry(self) -> bool:
        return any(c.category is Category.GEOMETRY for c in self.stored)

    def create_statement(self, quote) -> str:
        """CREATE TABLE statement for the stored columns.

        :param quote: Callable quoting an identifier
        """
        definitions = ", ".join(
            f"{quote(c.name)} {c.column.ddl_type}" for c in self.stored
        )
        return f"CREATE TABLE {quote(self.name)} ({definitions});"

    def placeholders(self) -> list[Placeholder]:
        """One placeholder per stored column, in column order."""
        placeholders = []
        for stored in self.stored:
            column = stored.column
            type_ = BIND_TYPES[stored.category]
            if stored.category is Category.GEOMETRY:
                placeholders.append(
                    Placeholder.geometry(
                        column.name, type_, column.given_srid, column.target_srid
                    )
                )
            else:
                placeholders.append(Placeholder(column.name, type_))
        return placeholders
