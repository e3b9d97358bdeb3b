"""
Shared fixtures: a SQLite database standing in for PostGIS.

ST_GeomFromWKB, ST_Transform, ST_SRID and ST_AsGeoJSON are registered as
Python functions and an attached ``information_schema`` database plays the
part of the PostgreSQL catalog.
"""

import json

import pytest
from geomet import wkb
from sqlalchemy import create_engine, event, text


class Spatial:
    """Python implementations of the PostGIS functions used by pgfeatures."""

    def __init__(self):
        self.srid = 4326
        self.transforms = []

    def geom_from_wkb(self, data, srid):
        return data

    def transform(self, geom, srid):
        self.transforms.append(srid)
        return geom

    def st_srid(self, geom):
        return self.srid if geom is not None else None

    def as_geojson(self, geom):
        if geom is None:
            return None
        return json.dumps(wkb.loads(bytes(geom)))


@pytest.fixture
def spatial():
    return Spatial()


@pytest.fixture
def engine(tmp_path, spatial):
    engine = create_engine(f"sqlite:///{tmp_path / 'features.db'}")
    catalog = str(tmp_path / "catalog.db")

    # pysqlite only supports SAVEPOINT when SQLAlchemy emits BEGIN itself
    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        dbapi_connection.create_function("ST_GeomFromWKB", 2, spatial.geom_from_wkb)
        dbapi_connection.create_function("ST_Transform", 2, spatial.transform)
        dbapi_connection.create_function("ST_SRID", 1, spatial.st_srid)
        dbapi_connection.create_function("ST_AsGeoJSON", 1, spatial.as_geojson)
        dbapi_connection.execute("ATTACH DATABASE ? AS information_schema", (catalog,))

    with engine.begin() as c:
        c.execute(
            text(
                """
                CREATE TABLE IF NOT EXISTS information_schema.columns (
                    table_schema TEXT,
                    table_name TEXT,
                    column_name TEXT,
                    data_type TEXT,
                    udt_name TEXT,
                    ordinal_position INTEGER
                )
                """
            )
        )
    yield engine
    engine.dispose()


@pytest.fixture
def register_table(engine):
    """Describe a table in the stand-in catalog.

    Columns are given as (name, data_type) or (name, data_type, udt_name).
    """

    def register(table, columns, schema="public"):
        with engine.begin() as c:
            for position, column in enumerate(columns, start=1):
                name, data_type = column[0], column[1]
                udt_name = column[2] if len(column) > 2 else data_type
                c.execute(
                    text(
                        "INSERT INTO information_schema.columns VALUES "
                        "(:schema, :table, :name, :data_type, :udt_name, :position)"
                    ),
                    {
                        "schema": schema,
                        "table": table,
                        "name": name,
                        "data_type": data_type,
                        "udt_name": udt_name,
                        "position": position,
                    },
                )

    return register


@pytest.fixture
def statements(engine):
    """Every statement executed against the engine, in order."""
    executed = []

    @event.listens_for(engine, "before_cursor_execute")
    def _record(conn, cursor, statement, parameters, context, executemany):
        executed.append((statement, parameters))

    yield executed
    event.remove(engine, "before_cursor_execute", _record)


def inserts(statements, table):
    return [(s, p) for s, p in statements if s.startswith(f'INSERT INTO "{table}"')]
