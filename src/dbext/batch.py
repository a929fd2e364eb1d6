"""
Chunked batch execution through a single prepared statement.
"""
import logging
from collections.abc import Callable, Iterable
from itertools import chain
from typing import Any, TypeVar

from dbext.exceptions import ValidationError
from dbext.statement import PreparedStatement

logger = logging.getLogger(__name__)

T = TypeVar('T')


def execute_batch(cn: Any, sql: str, rows: Iterable[T],
                  bind: Callable[[PreparedStatement, T], Any],
                  chunk_size: int | None = None) -> list[int]:
    """Bind every row into one prepared statement and execute it as a batch.

    ``bind(ps, row)`` must set every parameter the row needs: values are
    never cleared between rows, so anything it skips keeps the previous
    row's value. It must not call ``add_batch`` or ``execute_batch`` itself.

    With ``chunk_size`` > 0 the batch is flushed every ``chunk_size`` rows and
    once more for a trailing partial chunk; otherwise it is flushed once after
    the last row. ``None`` falls back to the connection's ``batch_size``
    option. Returns one affected-row count per input row, in input order.

    Errors from ``bind`` or from a flush propagate as-is; counts of chunks
    flushed before the failure are not returned. The statement is closed
    on every path.
    """
    if chunk_size is None:
        chunk_size = cn.options.batch_size
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int):
        raise ValidationError(f'chunk_size must be an int, got {type(chunk_size).__name__}')

    with cn.prepare_statement(sql) as ps:
        if chunk_size <= 0:
            return _execute_single(ps, rows, bind)
        return _execute_chunked(ps, rows, bind, chunk_size)


def _execute_single(ps: PreparedStatement, rows: Iterable[T],
                    bind: Callable[[PreparedStatement, T], Any]) -> list[int]:
    """Accumulate all rows and flush once."""
    count = 0
    for row in rows:
        bind(ps, row)
        ps.add_batch()
        count += 1

    if not count:
        logger.debug('Skipping batch execution of empty rows')
        return []

    return ps.execute_batch()


def _execute_chunked(ps: PreparedStatement, rows: Iterable[T],
                     bind: Callable[[PreparedStatement, T], Any],
                     chunk_size: int) -> list[int]:
    """Flush every ``chunk_size`` rows, then any trailing partial chunk."""
    chunks: list[list[int]] = []
    pending = 0
    for row in rows:
        bind(ps, row)
        ps.add_batch()
        pending += 1
        if pending == chunk_size:
            chunks.append(ps.execute_batch())
            pending = 0

    if pending:
        chunks.append(ps.execute_batch())

    logger.debug(f'Executed {len(chunks)} chunks of up to {chunk_size} rows')
    return list(chain.from_iterable(chunks))
