"""
Statement-layer exception classes.

Errors raised by the driver or by caller-supplied callbacks are never wrapped
here; they propagate unchanged. The classes below cover only what this
package itself validates. The exception groups let callers catch a driver
error without importing every driver.
"""
import sqlite3

import psycopg


class DatabaseError(Exception):
    """Base class for all dbext errors.
    """


class ValidationError(DatabaseError):
    """Invalid index, value, or use of a closed resource.
    """


class TypeConversionError(DatabaseError):
    """Error converting a column value to the requested type.
    """


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    )

IntegrityError = (
    psycopg.IntegrityError,
    sqlite3.IntegrityError,
    )

ProgrammingError = (
    psycopg.ProgrammingError,
    psycopg.DatabaseError,
    sqlite3.ProgrammingError,
    sqlite3.DatabaseError,
    )

OperationalError = (
    psycopg.OperationalError,
    sqlite3.OperationalError,
    )

UniqueViolation = (
    psycopg.errors.UniqueViolation,
    sqlite3.IntegrityError,
    )
