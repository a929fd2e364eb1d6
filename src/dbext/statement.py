"""
Statement handles over a DB-API connection.

A DB-API cursor is the only per-statement resource a driver hands out, so
each handle owns one cursor for its updates and opens a dedicated cursor for
every result set it produces. Closing a statement closes the result sets it
still has open, then its own cursor.

- Statement: executes SQL text directly
- PreparedStatement: one SQL template with ``?`` markers, 1-based parameter
  binding and a pending batch of parameter sets
"""
import logging
import time
from decimal import Decimal
from functools import wraps
from typing import Any, Self

from dbext.exceptions import ValidationError
from dbext.results import ResultSet
from dbext.sql import build_parameters, count_placeholders
from dbext.sql import standardize_placeholders
from dbext.types import check_signed, coerce, to_unsigned, ulong_to_decimal

logger = logging.getLogger(__name__)


def dumpsql(func):
    """Decorator for logging SQL and timing its execution."""
    @wraps(func)
    def wrapper(self, operation: str, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nargs: {args}')
        try:
            return func(self, operation, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{operation}\nargs: {args}')
            raise
        finally:
            elapsed = time.time() - start
            self.connwrapper.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


def dumpsql_batch(func):
    """Decorator for logging batch flushes."""
    @wraps(func)
    def wrapper(self, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{self.operation}\nparams: {len(self._batch)} rows')
        try:
            return func(self, *args, **kwargs)
        except Exception:
            logger.error(f'Error with batch:\nSQL:\n{self.operation}')
            raise
        finally:
            elapsed = time.time() - start
            self.connwrapper.addcall(elapsed)
            logger.debug(f'Batch time: {elapsed:.4f}s')
    return wrapper


class BaseStatement:
    """Shared lifecycle for statement handles.
    """

    def __init__(self, connwrapper: Any) -> None:
        self.connwrapper = connwrapper
        self.dbapi_cursor = connwrapper.dbapi_connection.cursor()
        self.closed = False
        self._results: list[ResultSet] = []

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()
        logger.debug(f'Closed {type(self).__name__} via context manager')

    def _check_open(self) -> None:
        if self.closed:
            raise ValidationError(f'{type(self).__name__} is closed')

    @property
    def rowcount(self) -> int:
        """Rows affected by the last update."""
        return self.dbapi_cursor.rowcount

    def close(self) -> None:
        """Close open result sets, then release the cursor.

        Safe to call more than once; the cursor is released only the first time.
        """
        if self.closed:
            return
        self.closed = True
        try:
            for rs in list(self._results):
                rs.close()
        finally:
            self.dbapi_cursor.close()

    def discard_results(self, rs: ResultSet) -> None:
        """Forget a result set that closed itself."""
        if rs in self._results:
            self._results.remove(rs)

    def _open_results(self, operation: str, params: Any = None) -> ResultSet:
        """Execute a query on a fresh cursor owned by the returned ResultSet."""
        cursor = self.connwrapper.dbapi_connection.cursor()
        try:
            if params is None:
                cursor.execute(operation)
            else:
                cursor.execute(operation, params)
        except Exception:
            cursor.close()
            raise
        rs = ResultSet(cursor, statement=self, options=self.connwrapper.options)
        self._results.append(rs)
        return rs


class Statement(BaseStatement):
    """Statement for SQL text executed without parameters.
    """

    @dumpsql
    def _execute_query(self, operation: str) -> ResultSet:
        return self._open_results(operation)

    @dumpsql
    def _execute_update(self, operation: str) -> int:
        self.dbapi_cursor.execute(operation)
        return self.dbapi_cursor.rowcount

    def execute_query(self, sql: str) -> ResultSet:
        """Execute a query and return its results.
        """
        self._check_open()
        return self._execute_query(sql)

    def execute_update(self, sql: str) -> int:
        """Execute a data or schema change and return the affected row count.
        """
        self._check_open()
        return self._execute_update(sql)


class PreparedStatement(BaseStatement):
    """A SQL template with ``?`` markers and 1-based parameter binding.

    Parameters persist across executions until overwritten or cleared with
    ``clear_parameters()``. ``add_batch()`` snapshots the current values into
    the pending batch; ``execute_batch()`` runs every pending set in order.

    Subscript assignment is shorthand for ``set``::

        ps[1] = 'alice'
        ps[2, sa.BigInteger] = '42'
    """

    def __init__(self, connwrapper: Any, sql: str) -> None:
        super().__init__(connwrapper)
        self.sql = sql
        self.parameter_count = count_placeholders(sql)
        self.operation = standardize_placeholders(sql, connwrapper.paramstyle)
        self._parameters: dict[int, Any] = {}
        self._batch: list[tuple | dict] = []

    def _check_index(self, index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValidationError(f'Parameter index must be an int, got {type(index).__name__}')
        if not 1 <= index <= self.parameter_count:
            raise ValidationError(
                f'Parameter index {index} out of range (statement has {self.parameter_count})'
            )

    @property
    def parameters(self) -> dict[int, Any]:
        """Currently bound values keyed by 1-based index."""
        return dict(self._parameters)

    @property
    def pending(self) -> int:
        """Number of parameter sets waiting in the batch."""
        return len(self._batch)

    def set(self, index: int, value: Any, sqltype: Any = None) -> None:
        """Bind a value, optionally coerced through a SQL type tag first.

        ``sqltype`` may be a Python type or a SQLAlchemy type.
        """
        self._check_open()
        self._check_index(index)
        self._parameters[index] = coerce(value, sqltype)

    set_object = set

    def __setitem__(self, key: int | tuple, value: Any) -> None:
        if isinstance(key, tuple):
            index, sqltype = key
            self.set(index, value, sqltype)
        else:
            self.set(key, value)

    def set_null(self, index: int) -> None:
        self.set(index, None)

    def set_string(self, index: int, value: str | None) -> None:
        self.set(index, value, str)

    def set_decimal(self, index: int, value: Any) -> None:
        self.set(index, value, Decimal)

    def set_short(self, index: int, value: int) -> None:
        self.set(index, check_signed(value, 16))

    def set_int(self, index: int, value: int) -> None:
        self.set(index, check_signed(value, 32))

    def set_long(self, index: int, value: int) -> None:
        self.set(index, check_signed(value, 64))

    def set_ubyte(self, index: int, value: int) -> None:
        """Bind an unsigned 8-bit value into a 16-bit signed slot."""
        self.set_short(index, to_unsigned(value, 8))

    def set_ushort(self, index: int, value: int) -> None:
        """Bind an unsigned 16-bit value into a 32-bit signed slot."""
        self.set_int(index, to_unsigned(value, 16))

    def set_uint(self, index: int, value: int) -> None:
        """Bind an unsigned 32-bit value into a 64-bit signed slot."""
        self.set_long(index, to_unsigned(value, 32))

    def set_ulong(self, index: int, value: int) -> None:
        """Bind an unsigned 64-bit value as a Decimal.

        No signed slot is wide enough, so the masked value goes out as an
        arbitrary-precision decimal.
        """
        self.set(index, ulong_to_decimal(value))

    def clear_parameters(self) -> None:
        self._check_open()
        self._parameters.clear()

    def _bound_parameters(self) -> tuple | dict:
        """Current values arranged for the driver's paramstyle."""
        for index in range(1, self.parameter_count + 1):
            if index not in self._parameters:
                raise ValidationError(f'No value specified for parameter {index}')
        values = [self._parameters[i] for i in range(1, self.parameter_count + 1)]
        return build_parameters(values, self.connwrapper.paramstyle)

    @dumpsql
    def _execute_query(self, operation: str, params: tuple | dict) -> ResultSet:
        return self._open_results(operation, params)

    @dumpsql
    def _execute_update(self, operation: str, params: tuple | dict) -> int:
        self.dbapi_cursor.execute(operation, params)
        return self.dbapi_cursor.rowcount

    def execute_query(self) -> ResultSet:
        """Execute with the bound parameters and return the results.
        """
        self._check_open()
        return self._execute_query(self.operation, self._bound_parameters())

    def execute_update(self) -> int:
        """Execute with the bound parameters and return the affected row count.
        """
        self._check_open()
        return self._execute_update(self.operation, self._bound_parameters())

    def add_batch(self) -> None:
        """Snapshot the bound parameters into the pending batch.
        """
        self._check_open()
        self._batch.append(self._bound_parameters())

    def clear_batch(self) -> None:
        self._check_open()
        self._batch.clear()

    @dumpsql_batch
    def execute_batch(self) -> list[int]:
        """Execute every pending parameter set in order.

        Returns one affected-row count per set. The pending batch is emptied
        even when a set fails.
        """
        self._check_open()
        pending, self._batch = self._batch, []
        counts = []
        for params in pending:
            self.dbapi_cursor.execute(self.operation, params)
            counts.append(self.dbapi_cursor.rowcount)
        return counts
