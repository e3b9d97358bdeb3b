# encoding: utf-8
import datetime
import decimal
import logging
from pathlib import Path
from typing import Any, Iterator, Optional, Union

import geojson
from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from pgfeatures.db import quoter
from pgfeatures.exceptions import SchemaError
from pgfeatures.lib.columns import Column
from pgfeatures.lib.constants import DEFAULT_SCHEMA, DEFAULT_SRID
from pgfeatures.lib.geofiles import write_feature_collection
from pgfeatures.types import FeatureSink

logger = logging.getLogger(__name__)

FETCH_SIZE = 1000

USER_DEFINED = "USER-DEFINED"


def read_columns(
    connection: Connection, table: str, schema: str = DEFAULT_SCHEMA
) -> list[tuple[str, str]]:
    """Read the columns of a table from the catalog.

    User defined types (geometry, hstore) are reported by their type name.

    :param connection: Database connection
    :param table: Table name
    :param schema: Database schema (Default value = 'public')
    :returns: Ordered list of (column name, raw type) pairs
    """
    query = text(
        """
        SELECT column_name, data_type, udt_name
        FROM information_schema.columns
        WHERE table_schema = :schema AND table_name = :table
        ORDER BY ordinal_position
        """
    )
    columns = []
    for name, data_type, udt_name in connection.execute(
        query, {"schema": schema, "table": table}
    ):
        if data_type == USER_DEFINED and udt_name:
            data_type = udt_name
        columns.append((name, data_type))
    if not columns:
        raise SchemaError({table: f"Table {schema}.{table} not found or has no columns"})
    return columns


def geometry_key(columns: list[tuple[str, str]]) -> tuple[list[str], Optional[str]]:
    """Split the geometry column from the rest.

    :param columns: (column name, raw type) pairs as returned by read_columns
    :returns: The non geometry column names and the geometry column name, or None
    """
    names = []
    geometry_column = None
    for name, raw_type in columns:
        if geometry_column is None and raw_type.lower() == "geometry":
            geometry_column = name
        else:
            names.append(name)
    return names, geometry_column


def _qualified(quote, table: str, schema: str) -> str:
    if schema == DEFAULT_SCHEMA:
        return quote(table)
    return f"{quote(schema)}.{quote(table)}"


def get_srid(
    connection: Connection,
    table: str,
    geometry_column: str,
    schema: str = DEFAULT_SCHEMA,
    default: int = DEFAULT_SRID,
) -> int:
    """Get the SRID of a geometry column from its first row.

    :returns: The SRID, or the default when the table is empty
    """
    quote = quoter(connection.engine)
    query = text(
        f"SELECT ST_SRID({quote(geometry_column)}) "
        f"FROM {_qualified(quote, table, schema)} LIMIT 1"
    )
    srid = connection.execute(query).scalar()
    return int(srid) if srid else default


def introspect_columns(
    connection: Connection,
    table: str,
    schema: str = DEFAULT_SCHEMA,
    srid: int = DEFAULT_SRID,
) -> list[Column]:
    """Build column declarations for an existing table.

    Incoming geometries are assumed to be in ``srid`` and are transformed to
    the SRID already stored in the table when the two differ.
    """
    columns = []
    for name, raw_type in read_columns(connection, table, schema):
        if raw_type.lower() == "geometry":
            stored_srid = get_srid(connection, table, name, schema, default=srid)
            columns.append(Column(name, raw_type, given_srid=srid, target_srid=stored_srid))
        else:
            columns.append(Column(name, raw_type))
    return columns


def _json_value(value: Any) -> Any:
    if isinstance(value, decimal.Decimal):
        return float(value)
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    if isinstance(value, (bytes, memoryview)):
        return bytes(value).hex()
    return value


def read_features(
    engine: Engine, table: str, schema: str = DEFAULT_SCHEMA
) -> Iterator[geojson.Feature]:
    """Read every row of a table as a GeoJSON feature in EPSG:4326.

    The geometry is converted on the server with ST_AsGeoJSON. An integer
    ``osm_id`` column becomes the feature id.

    :raises SchemaError: if the table has no geometry column
    """
    quote = quoter(engine)
    with engine.connect() as c:
        columns, geometry_column = geometry_key(read_columns(c, table, schema))
        if geometry_column is None:
            raise SchemaError({table: "No geometry column to export"})

        srid = get_srid(c, table, geometry_column, schema)
        geometry_sql = quote(geometry_column)
        if srid != DEFAULT_SRID:
            geometry_sql = f"ST_Transform({geometry_sql}, {DEFAULT_SRID})"

        selected = [quote(name) for name in columns]
        selected.append(f"ST_AsGeoJSON({geometry_sql})")
        query = text(
            f"SELECT {', '.join(selected)} FROM {_qualified(quote, table, schema)}"
        )
        logger.debug(query)

        result = c.execute(query)
        geometry_pos = len(columns)
        while True:
            rows = result.fetchmany(FETCH_SIZE)
            if not rows:
                break
            for row in rows:
                properties = {
                    key: _json_value(row[pos]) for pos, key in enumerate(columns)
                }
                geometry = row[geometry_pos]
                feature = geojson.Feature(
                    geometry=geojson.loads(geometry) if geometry else None,
                    properties=properties,
                )
                osm_id = properties.get("osm_id")
                if isinstance(osm_id, int) and not isinstance(osm_id, bool):
                    feature["id"] = osm_id
                yield feature


def dump_table(
    engine: Engine, table: str, sink: FeatureSink, schema: str = DEFAULT_SCHEMA
) -> int:
    """Send every feature of a table to a sink.

    :param sink: Callable receiving one feature at a time
    :returns: The number of features dumped
    """
    count = 0
    for feature in read_features(engine, table, schema):
        sink(feature)
        count += 1
    logger.info(f"{count} features read from {table}.")
    return count


def table_to_geojson(
    engine: Engine,
    table: str,
    outfilename: Union[str, Path],
    schema: str = DEFAULT_SCHEMA,
) -> int:
    """Write a table to a GeoJSON FeatureCollection file.

    :returns: The number of features written
    """
    return write_feature_collection(read_features(engine, table, schema), outfilename)
