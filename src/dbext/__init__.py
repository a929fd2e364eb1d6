"""
Statement, result set and batch helpers over DB-API connections.

All operations can be called either as:
- Module functions: dbext.execute_batch(cn, sql, rows, bind)
- ConnectionWrapper / ResultSet methods: cn.execute_batch(sql, rows, bind)

Module functions accept a raw DB-API connection, a SQLAlchemy connection or
a ConnectionWrapper.
"""
__version__ = '0.1.0'

from collections.abc import Callable, Iterable, Iterator
from typing import Any

from dbext.connection import ConnectionWrapper, wrap
from dbext.exceptions import DatabaseError, DbConnectionError, IntegrityError
from dbext.exceptions import OperationalError, ProgrammingError
from dbext.exceptions import TypeConversionError, UniqueViolation
from dbext.exceptions import ValidationError
from dbext.options import StatementOptions
from dbext.results import ResultSet, SqlArray
from dbext.scoped import using, with_array, with_results
from dbext.scoped import with_statement_results as _with_statement_results
from dbext.statement import PreparedStatement, Statement
from dbext.types import UBYTE_MASK, UINT_MASK, ULONG_MASK, USHORT_MASK


def prepare_statement(cn: Any, sql: str) -> PreparedStatement:
    """Prepare a statement for ``sql``. Close it or use it in a `with` block.
    """
    return wrap(cn).prepare_statement(sql)


def create_statement(cn: Any) -> Statement:
    """Create a statement for direct SQL. Close it or use it in a `with` block.
    """
    return wrap(cn).create_statement()


def with_prepared_statement(cn: Any, sql: str, action: Callable[[PreparedStatement], Any]) -> Any:
    """Prepare ``sql``, run ``action`` on the statement and close it.
    """
    return wrap(cn).with_prepared_statement(sql, action)


def with_prepared_update(cn: Any, sql: str, bind: Callable[[PreparedStatement], Any]) -> int:
    """Prepare ``sql``, bind with ``bind``, execute as an update and close.

    Returns the affected row count.
    """
    return wrap(cn).with_prepared_update(sql, bind)


def with_statement_results(target: Any, sql: str, action: Callable[[ResultSet], Any]) -> Any:
    """Execute ``sql`` directly and run ``action`` on the results.

    An open Statement passed as ``target`` stays open; a statement created
    here for a connection is closed.
    """
    if isinstance(target, Statement):
        return _with_statement_results(target, sql, action)
    return wrap(target).with_statement_results(sql, action)


def execute_batch(cn: Any, sql: str, rows: Iterable[Any],
                  bind: Callable[[PreparedStatement, Any], Any],
                  chunk_size: int | None = None) -> list[int]:
    """Execute ``sql`` once per row as a batch, flushing every ``chunk_size`` rows.

    Returns one affected-row count per row, in input order.
    """
    return wrap(cn).execute_batch(sql, rows, bind, chunk_size)


def iter_results(rs: ResultSet) -> Iterator[ResultSet]:
    """Yield the result set once per row. Does not close it.
    """
    return iter(rs)


def map_results(rs: ResultSet, fn: Callable[[ResultSet], Any]) -> list[Any]:
    """Collect ``fn(rs)`` for every remaining row.
    """
    return rs.map(fn)


def for_each(rs: ResultSet, fn: Callable[[ResultSet], Any]) -> None:
    """Call ``fn(rs)`` for every remaining row.
    """
    rs.for_each(fn)


def map_into(rs: ResultSet, target: Any, fn: Callable[[ResultSet], Any]) -> Any:
    """Add ``fn(rs)`` for every remaining row to ``target`` and return it.
    """
    return rs.map_into(target, fn)


def to_dict(rs: ResultSet, fn: Callable[[ResultSet], tuple[Any, Any]],
            target: dict | None = None) -> dict:
    """Build a mapping from ``fn(rs) -> (key, value)`` for every remaining row.
    """
    return rs.to_dict(fn, target)


def to_dict_by(rs: ResultSet, key_fn: Callable[[ResultSet], Any],
               value_fn: Callable[[ResultSet], Any], target: dict | None = None) -> dict:
    """Build a mapping from separate key and value functions.
    """
    return rs.to_dict_by(key_fn, value_fn, target)


__all__ = [
    'wrap',
    'ConnectionWrapper',
    'StatementOptions',
    'Statement',
    'PreparedStatement',
    'ResultSet',
    'SqlArray',
    'prepare_statement',
    'create_statement',
    'using',
    'with_prepared_statement',
    'with_prepared_update',
    'with_statement_results',
    'with_results',
    'with_array',
    'execute_batch',
    'iter_results',
    'map_results',
    'for_each',
    'map_into',
    'to_dict',
    'to_dict_by',
    'UBYTE_MASK',
    'USHORT_MASK',
    'UINT_MASK',
    'ULONG_MASK',
    'DatabaseError',
    'ValidationError',
    'TypeConversionError',
    'IntegrityError',
    'ProgrammingError',
    'OperationalError',
    'UniqueViolation',
    'DbConnectionError',
]
