# encoding: utf-8
import logging
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy.engine import Connection, Engine, NestedTransaction, Transaction
from sqlalchemy.exc import SQLAlchemyError

from pgfeatures.config import Settings
from pgfeatures.db import create_extensions, execute_ddl, get_connection, quoter
from pgfeatures.exceptions import ExecutionError, TransactionError
from pgfeatures.lib.columns import Column, TableSchema, coerce
from pgfeatures.lib.constants import DEFAULT_SCHEMA
from pgfeatures.lib.geofiles import format_tag_map, validate_polygon_geom
from pgfeatures.lib.statement import InsertStatement
from pgfeatures.lib.tabledump import introspect_columns
from pgfeatures.lib.wkb import dumps
from pgfeatures.types import Category

logger = logging.getLogger(__name__)


class FeatureTable:
    """Batched writer for one PostGIS table.

    Rows are buffered in a multi-row INSERT and executed every
    ``settings.batch_size`` features inside a long-lived transaction. After
    each commit a fresh transaction is opened, so the table always holds an
    open transaction between calls. Not thread-safe: use one writer per thread.

    ``inserted`` counts rows that are committed or still waiting for the next
    commit; rows lost to a failed commit or a rollback are subtracted again.

    Use :meth:`declare` to create a new table or :meth:`from_existing` to
    append to one.

    :param engine: Database engine
    :param schema: Compiled column list
    :param settings: Batch size, SRID and byte order (Default value = Settings())
    """

    def __init__(
        self,
        engine: Engine,
        schema: TableSchema,
        settings: Optional[Settings] = None,
    ):
        self.engine = engine
        self.schema = schema
        self.settings = settings or Settings()
        self.name = schema.name

        quote = quoter(engine)
        self.create_stmt = schema.create_statement(quote)
        self.insert = InsertStatement(schema.name, schema.placeholders(), quote)

        self.inserted = 0
        self.uncommitted = 0
        self.connection: Optional[Connection] = None
        self.transaction: Optional[Transaction] = None
        self.usable = False

    @classmethod
    def declare(
        cls,
        engine: Engine,
        name: str,
        columns: Iterable[Column],
        settings: Optional[Settings] = None,
    ) -> "FeatureTable":
        """Create the table and return a writer for it.

        Extension bootstrap and the CREATE TABLE statement are best effort:
        failures are logged and the writer is returned anyway, so an existing
        table can be appended to.

        :param engine: Database engine
        :param name: Table name
        :param columns: Column declarations, in order
        :param settings: (Default value = Settings())
        :raises SchemaError: if the columns cannot be compiled
        """
        settings = settings or Settings()
        table = cls(engine, TableSchema(name, columns, srid=settings.srid), settings)
        create_extensions(engine, table.required_extensions())
        if execute_ddl(engine, table.create_stmt):
            logger.info(f"Created table {name}.")
        table.open()
        return table

    @classmethod
    def from_existing(
        cls,
        engine: Engine,
        name: str,
        settings: Optional[Settings] = None,
        schema: str = DEFAULT_SCHEMA,
    ) -> "FeatureTable":
        """Return a writer for a table that already exists, reading its
        columns from the catalog.

        :param engine: Database engine
        :param name: Table name
        :param settings: (Default value = Settings())
        :param schema: Database schema holding the table (Default value = 'public')
        """
        settings = settings or Settings()
        with get_connection(engine) as c:
            columns = introspect_columns(c, name, schema=schema, srid=settings.srid)
        table = cls(
            engine, TableSchema(name, columns, srid=settings.srid, strict=False), settings
        )
        table.open()
        return table

    def required_extensions(self) -> list[str]:
        extensions = []
        for extension in self.settings.extensions:
            if extension == "postgis" and not self.schema.has_geometry:
                continue
            if extension == "hstore" and self.schema.tag_map is None:
                continue
            extensions.append(extension)
        return extensions

    @property
    def pending(self) -> int:
        """Number of rows buffered since the last flush."""
        return len(self.insert)

    def open(self) -> None:
        try:
            self.connection = self.engine.connect()
        except SQLAlchemyError as e:
            self.usable = False
            logger.exception(f"Could not connect for {self.name}.")
            raise TransactionError(f"Could not connect for {self.name}") from e
        self._begin()

    def _begin(self) -> None:
        try:
            self.transaction = self.connection.begin()
        except SQLAlchemyError as e:
            self.usable = False
            logger.exception(f"Could not begin a transaction on {self.name}.")
            raise TransactionError(
                f"Could not begin a transaction on {self.name}, recreate the table writer"
            ) from e
        self.usable = True

    def _check_usable(self) -> None:
        if not self.usable:
            raise TransactionError(f"Table writer for {self.name} has no open transaction")

    def _build_row(self, feature: Mapping[str, Any]) -> list:
        geometry = feature.get("geometry")
        properties = feature.get("properties") or {}

        encoded = None
        row = []
        for stored in self.schema.stored:
            if stored.category is Category.GEOMETRY:
                if geometry is None:
                    row.append(None)
                    continue
                if encoded is None:
                    encoded = dumps(geometry, self.settings.byte_order)
                row.append(encoded)
            elif stored.category is Category.TAGMAP:
                row.append(format_tag_map(properties, self.schema.tags))
            else:
                row.append(coerce(properties.get(stored.name), stored.category))
        return row

    def add_feature(self, feature: Mapping[str, Any]) -> None:
        """Buffer one feature, flushing when the batch is full.

        The row is built completely before it is buffered, so a rejected
        feature leaves the batch unchanged.

        :param feature: GeoJSON feature mapping
        :raises ValidationError: if a polygon ring is too short
        :raises UnsupportedGeometryError: if the geometry type cannot be encoded
        :raises ExecutionError: if the automatic flush fails
        """
        self._check_usable()
        geometry = feature.get("geometry")
        if geometry is not None:
            validate_polygon_geom(geometry)

        self.insert.add_row(self._build_row(feature))
        if len(self.insert) >= self.settings.batch_size:
            self.flush()

    def add_features(self, features: Iterable[Mapping[str, Any]]) -> int:
        count = 0
        for feature in features:
            self.add_feature(feature)
            count += 1
        return count

    def flush(self) -> int:
        """Execute the buffered rows as one INSERT.

        Each flush runs inside its own savepoint. On failure the batch is
        discarded and only the savepoint is rolled back, so rows flushed
        earlier in the transaction are kept.

        :returns: The number of rows inserted
        :raises ExecutionError: if the statement fails; ``rows`` counts every
            row lost with it
        """
        self._check_usable()
        rows = len(self.insert)
        if not rows:
            return 0

        statement = self.insert.compile()
        savepoint = None
        try:
            savepoint = self.connection.begin_nested()
            self.connection.execute(statement)
            savepoint.commit()
        except SQLAlchemyError as e:
            self.insert.reset()
            lost = rows + self._recover(savepoint)
            logger.error(
                f"Inserting {rows} rows into {self.name} failed, {lost} rows lost: {e}"
            )
            raise ExecutionError(
                f"Inserting {rows} rows into {self.name} failed", rows=lost
            ) from e

        self.insert.reset()
        self.inserted += rows
        self.uncommitted += rows
        logger.info(f"{self.inserted} rows inserted into {self.name}.")
        return rows

    def _recover(self, savepoint: Optional[NestedTransaction]) -> int:
        """Undo a failed flush.

        :returns: The number of earlier, uncommitted rows lost as well
        """
        if savepoint is not None and savepoint.is_active:
            try:
                savepoint.rollback()
                return 0
            except SQLAlchemyError:
                logger.exception(f"Rolling back to the savepoint on {self.name} failed.")
        lost = self._forget_uncommitted()
        self._restart()
        return lost

    def _forget_uncommitted(self) -> int:
        lost = self.uncommitted
        self.inserted -= lost
        self.uncommitted = 0
        return lost

    def _restart(self) -> None:
        try:
            self.transaction.rollback()
        except SQLAlchemyError as e:
            self.usable = False
            raise TransactionError(f"Rolling back {self.name} failed") from e
        self._begin()

    def commit(self) -> None:
        """Flush pending rows, commit, and open a replacement transaction.

        :raises ExecutionError: if the flush fails; nothing is committed
        :raises TransactionError: if the commit or the new transaction fails.
            After a failed commit ``rows`` counts the uncommitted rows lost.
        """
        self._check_usable()
        self.flush()
        try:
            self.transaction.commit()
        except SQLAlchemyError as e:
            logger.exception(f"Commit on {self.name} failed.")
            lost = self._forget_uncommitted()
            self._restart()
            raise TransactionError(f"Commit on {self.name} failed", rows=lost) from e
        self.uncommitted = 0
        logger.debug(f"Committed {self.name}.")
        self._begin()

    def rollback(self) -> None:
        """Discard pending rows and everything since the last commit."""
        self._check_usable()
        if self.pending or self.uncommitted:
            logger.warning(
                f"Discarding {self.pending} pending and {self.uncommitted} "
                f"uncommitted rows for {self.name}."
            )
        self.insert.reset()
        self._forget_uncommitted()
        self._restart()

    def close(self) -> None:
        if self.connection is None:
            return
        if self.pending or self.uncommitted:
            logger.warning(
                f"Closing {self.name} with {self.pending + self.uncommitted} "
                "uncommitted rows."
            )
            self.insert.reset()
            self._forget_uncommitted()
        self.usable = False
        self.connection.close()
        self.connection = None
        self.transaction = None

    def __enter__(self) -> "FeatureTable":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        try:
            if exc_type is None:
                self.commit()
            elif self.usable:
                self.rollback()
        finally:
            self.close()
