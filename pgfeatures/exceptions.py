# encoding: utf-8


class PgFeaturesError(Exception):
    """Base class for every error raised by pgfeatures."""


class ConfigError(PgFeaturesError, ValueError):
    pass


class SchemaError(PgFeaturesError, ValueError):
    """A column list cannot be compiled into a table."""


class ValidationError(PgFeaturesError, ValueError):
    """A feature was rejected before it reached the row accumulator."""


class UnsupportedGeometryError(PgFeaturesError, TypeError):
    pass


class ExecutionError(PgFeaturesError):
    """A statement failed against the database.

    :param message: Human readable description
    :param rows: Number of rows that were lost with the failed statement
    """

    def __init__(self, message: str, rows: int = 0):
        super().__init__(message)
        self.rows = rows


class TransactionError(ExecutionError):
    """Committing, rolling back or replacing the table transaction failed."""
