# encoding: utf-8
# Types and Constants used throughout the package.
from enum import Enum
from typing import Any, Callable, Literal, Mapping, TypedDict, Union


class Category(Enum):
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    BOOL = "bool"
    GEOMETRY = "geometry"
    TAGMAP = "tagmap"


class ColumnType(str, Enum):
    # int types
    SMALLINT = "smallint"
    INTEGER = "integer"
    BIGINT = "bigint"

    # float types
    DECIMAL = "decimal"
    NUMERIC = "numeric"
    REAL = "real"
    DOUBLE = "double precision"

    # serial types
    SMALLSERIAL = "smallserial"
    SERIAL = "serial"
    BIGSERIAL = "bigserial"

    # character types
    VARCHAR = "varchar"
    CHAR = "char"
    TEXT = "text"

    # binary data
    BYTEA = "bytea"

    # timestamps & timezones
    TIMESTAMP = "timestamp without time zone"
    TIMESTAMPTZ = "timestamp with time zone"
    DATE = "date"
    TIME = "time without time zone"
    TIMETZ = "time with time zone"
    INTERVAL = "interval"

    BOOLEAN = "boolean"
    GEOMETRY = "geometry"
    HSTORE = "hstore"

    def __str__(self) -> str:
        return self.value


ByteOrder = Literal["little", "big"]

PropertyValue = Union[str, int, float, bool, None]

Properties = Mapping[str, PropertyValue]

Geometry = Mapping[str, Any]

FeatureSink = Callable[[Any], None]


class FeatureDict(TypedDict):
    type: str
    geometry: Union[Geometry, None]
    properties: dict[str, PropertyValue]
