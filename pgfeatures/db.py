#!/usr/bin/env python
# encoding: utf-8

import logging
from contextlib import contextmanager
from typing import Callable, Generator, Iterable, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


def get_engine(url: str, **kwargs) -> Engine:
    """Create an engine for the given database URL.

    :param url: SQLAlchemy database URL
    :param kwargs: Passed on to ``sqlalchemy.create_engine``
    """
    return create_engine(url, **kwargs)


@contextmanager
def get_connection(
    engine: Engine,
    connection: Optional[Connection] = None,
) -> Generator[Connection, None, None]:
    """Context manager to get a database connection

    This will either return the provided connection (and then leave it open)
    or create a new connection, in its own transaction, for this operation only.

    :param engine: Engine used when no connection is given
    :param connection: Database connection or None (Default value = None)
    """
    if connection:
        yield connection
    else:
        with engine.begin() as new_connection:
            yield new_connection


def quoter(engine: Engine) -> Callable[[str], str]:
    """Identifier quoting function for the engine's dialect."""
    preparer = engine.dialect.identifier_preparer
    return preparer.quote_identifier


def execute_ddl(engine: Engine, statement: str) -> bool:
    """Run one DDL statement in its own transaction, logging failures.

    :param engine: Database engine
    :param statement: SQL statement
    :returns: True if the statement succeeded
    """
    try:
        with get_connection(engine) as c:
            c.execute(text(statement))
    except SQLAlchemyError as e:
        logger.warning(f"Statement failed: {statement.strip()} ({e.__class__.__name__}: {e})")
        return False
    logger.debug(statement)
    return True


def create_extensions(engine: Engine, extensions: Iterable[str]) -> None:
    """Create database extensions, tolerating ones that already exist or
    cannot be created.

    :param engine: Database engine
    :param extensions: Extension names
    """
    quote = quoter(engine)
    for extension in extensions:
        execute_ddl(engine, f"CREATE EXTENSION IF NOT EXISTS {quote(extension)};")
