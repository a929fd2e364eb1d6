"""
Connection wrapper for statement helpers.

This module provides:
1. The `ConnectionWrapper` class that binds a live DB-API connection to its
   StatementOptions and detected paramstyle
2. The `wrap()` function that builds a wrapper from a raw DB-API connection,
   a SQLAlchemy connection, or an existing wrapper

The wrapper never opens, commits or closes the connection itself; the
caller owns its lifecycle. Every helper is available as a method:
- prepare_statement(sql) / create_statement() - scoped via `with`
- with_prepared_statement(sql, action) - prepare, run action, close
- with_prepared_update(sql, bind) - prepare, bind, execute update, close
- with_statement_results(sql, action) - direct query, run action, close
- execute_batch(sql, rows, bind, chunk_size) - chunked batch execution
"""
import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from dbext.batch import execute_batch
from dbext.options import StatementOptions
from dbext.results import ResultSet
from dbext.scoped import with_prepared_statement, with_prepared_update
from dbext.scoped import with_statement_results
from dbext.statement import PreparedStatement, Statement
from dbext.utils import get_dialect_name, get_paramstyle, get_raw_connection

from libb import load_options

__all__ = [
    'ConnectionWrapper',
    'wrap',
    'load_statement_options',
]

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ConnectionWrapper:
    """Wraps a DB-API connection to hand out statement handles

    This class provides a thin wrapper around a live connection that:
    1. Unwraps SQLAlchemy connections to the driver connection
    2. Detects the driver's paramstyle (or takes it from the options)
    3. Tracks statement execution counts and timing
    4. Delegates attribute access to the DB-API connection
    """

    def __init__(self, connection: Any, options: StatementOptions | None = None) -> None:
        """Initialize a connection wrapper
        """
        self.connection = connection
        self.dbapi_connection = get_raw_connection(connection)
        self.options = options if options is not None else StatementOptions()
        self.paramstyle = self.options.paramstyle or get_paramstyle(self.dbapi_connection)
        self.calls = 0
        self.time = 0

    def __getattr__(self, name: str) -> Any:
        """Delegate attribute access to the DB-API connection.
        """
        return getattr(self.dbapi_connection, name)

    @property
    def dialect(self) -> str:
        """Return the dialect name, or 'unknown' for other drivers."""
        try:
            return get_dialect_name(self.connection)
        except AttributeError:
            return 'unknown'

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1
        logger.debug(f'{self.options.appname}: {self.calls} statements in {self.time:.2f}s')

    def prepare_statement(self, sql: str) -> PreparedStatement:
        """Prepare a statement; close it or use it in a `with` block.
        """
        return PreparedStatement(self, sql)

    def create_statement(self) -> Statement:
        """Create a statement for direct SQL; close it or use it in a `with` block.
        """
        return Statement(self)

    def with_prepared_statement(self, sql: str,
                                action: Callable[[PreparedStatement], T]) -> T:
        """Prepare ``sql``, run ``action`` on it, and close it.
        """
        return with_prepared_statement(self, sql, action)

    def with_prepared_update(self, sql: str,
                             bind: Callable[[PreparedStatement], Any]) -> int:
        """Prepare ``sql``, bind with ``bind``, execute as an update and close.
        """
        return with_prepared_update(self, sql, bind)

    def with_statement_results(self, sql: str, action: Callable[[ResultSet], T]) -> T:
        """Execute ``sql`` directly, run ``action`` on the results, close both.
        """
        return with_statement_results(self, sql, action)

    def execute_batch(self, sql: str, rows: Iterable[Any],
                      bind: Callable[[PreparedStatement, Any], Any],
                      chunk_size: int | None = None) -> list[int]:
        """Execute ``sql`` once per row as a chunked batch.
        """
        return execute_batch(self, sql, rows, bind, chunk_size)


@load_options(cls=StatementOptions)
def load_statement_options(options: StatementOptions | dict[str, Any] | str,
                           config: Any | None = None, **kw: Any) -> StatementOptions:
    """Load StatementOptions from an instance, a dict, or a config path.
    """
    return options


def wrap(connection: Any, options: StatementOptions | dict[str, Any] | str | None = None,
         config: Any | None = None, **kw: Any) -> ConnectionWrapper:
    """Wrap a live connection for the statement helpers

    Args:
        connection: Can be:
                - ConnectionWrapper (returned as-is when no options are given)
                - SQLAlchemy Connection
                - Raw DB-API connection
        options: StatementOptions object, dict, or configuration path
        config: Configuration object (for loading from config files)
        **kw: Option values, or overrides when ``options`` is given

    Returns
        ConnectionWrapper around the connection
    """
    if isinstance(connection, ConnectionWrapper):
        if options is None and not kw:
            return connection
        connection = connection.connection

    if options is None:
        options = StatementOptions(**kw)
    elif not isinstance(options, StatementOptions):
        options = load_statement_options(options, config, **kw)

    return ConnectionWrapper(connection, options)
