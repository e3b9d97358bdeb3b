# encoding: utf-8
from pgfeatures.config import Settings
from pgfeatures.exceptions import (
    ConfigError,
    ExecutionError,
    PgFeaturesError,
    SchemaError,
    TransactionError,
    UnsupportedGeometryError,
    ValidationError,
)
from pgfeatures.lib.columns import Column, category_of, coerce
from pgfeatures.lib.table import FeatureTable
from pgfeatures.lib.tabledump import dump_table, read_features, table_to_geojson
from pgfeatures.lib.wkb import WKBEncoder, dumps
from pgfeatures.types import Category, ColumnType

__all__ = [
    "Category",
    "Column",
    "ColumnType",
    "ConfigError",
    "ExecutionError",
    "FeatureTable",
    "PgFeaturesError",
    "SchemaError",
    "Settings",
    "TransactionError",
    "UnsupportedGeometryError",
    "ValidationError",
    "WKBEncoder",
    "category_of",
    "coerce",
    "dump_table",
    "dumps",
    "read_features",
    "table_to_geojson",
]
