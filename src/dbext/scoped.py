"""
Scoped resource helpers.

Each helper acquires one resource, passes it to a caller-supplied action,
and closes it when the action returns or raises. The action's return value
is passed through. When both the action and the close fail, the close error
propagates with the action's error attached as its ``__context__``.

The ``with`` statement is the receiver-style equivalent of every helper::

    with cn.prepare_statement(sql) as ps:
        ...
"""
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from dbext.results import ResultSet
from dbext.statement import PreparedStatement, Statement

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


def using(resource: R, action: Callable[[R], T]) -> T:
    """Run ``action(resource)`` and close the resource on every exit path.
    """
    try:
        return action(resource)
    finally:
        resource.close()


def with_prepared_statement(cn: Any, sql: str,
                            action: Callable[[PreparedStatement], T]) -> T:
    """Prepare ``sql``, run ``action`` on the statement, close it.

    Nothing is executed unless ``action`` does it.
    """
    return using(cn.prepare_statement(sql), action)


def with_prepared_update(cn: Any, sql: str,
                         bind: Callable[[PreparedStatement], Any]) -> int:
    """Prepare ``sql``, bind parameters with ``bind``, execute as an update.

    Returns the affected row count. The return value of ``bind`` is ignored.
    """
    def run(ps: PreparedStatement) -> int:
        bind(ps)
        return ps.execute_update()
    return using(cn.prepare_statement(sql), run)


def with_results(ps: PreparedStatement, action: Callable[[ResultSet], T]) -> T:
    """Execute a prepared query and run ``action`` on its results.

    The result set is closed afterwards; the statement stays open.
    """
    return using(ps.execute_query(), action)


def with_statement_results(target: Any, sql: str,
                           action: Callable[[ResultSet], T]) -> T:
    """Execute ``sql`` directly and run ``action`` on its results.

    ``target`` is either an open Statement, which is left open, or a
    connection, in which case the statement created here is closed too.
    """
    if isinstance(target, Statement):
        return using(target.execute_query(sql), action)
    logger.debug('Creating statement for direct query')
    return using(target.create_statement(),
                 lambda stmt: using(stmt.execute_query(sql), action))


def with_array(rs: ResultSet, column: int | str, action: Callable[[Any], T]) -> T:
    """Run ``action`` on an array column of the current row, then free it.
    """
    return rs.with_array(column, action)
