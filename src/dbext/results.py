"""
Result sets over an executed DB-API cursor.

A ResultSet is positional: ``next()`` fetches one row and makes it current,
and the getters read columns of the current row by 1-based index or by label.
The collection helpers all drive ``next()`` and never close the result set.
"""
import json
import logging
from collections.abc import Callable, Iterator, Mapping
from typing import Any, Self

from dbext.exceptions import TypeConversionError, ValidationError
from dbext.types import coerce

from libb import attrdict

logger = logging.getLogger(__name__)


class SqlArray:
    """An array-typed column value that must be freed after use.

    Lists and tuples (as psycopg returns them) are used directly; text
    values are parsed as JSON arrays when ``parse_json`` is set, which is how
    sqlite stores them.
    """

    def __init__(self, value: Any, parse_json: bool = True) -> None:
        if isinstance(value, (list, tuple)):
            items = list(value)
        elif isinstance(value, (str, bytes)) and parse_json:
            try:
                items = json.loads(value)
            except ValueError as err:
                raise TypeConversionError(f'Column value is not a JSON array: {value!r}') from err
            if not isinstance(items, list):
                raise TypeConversionError(f'Column value is not a JSON array: {value!r}')
        else:
            raise TypeConversionError(f'Cannot read {type(value).__name__} value as an array')
        self._items: list[Any] | None = items
        self.freed = False

    def _check_live(self) -> list[Any]:
        if self.freed:
            raise ValidationError('Array has been freed')
        return self._items

    @property
    def array(self) -> list[Any]:
        """Copy of the array elements."""
        return list(self._check_live())

    @property
    def base_type_name(self) -> str | None:
        """Python type name of the first non-null element."""
        for item in self._check_live():
            if item is not None:
                return type(item).__name__
        return None

    def __len__(self) -> int:
        return len(self._check_live())

    def __iter__(self) -> Iterator[Any]:
        return iter(self.array)

    def __getitem__(self, index: int) -> Any:
        return self._check_live()[index]

    def free(self) -> None:
        """Release the elements. Later access raises ValidationError."""
        self.freed = True
        self._items = None


class ResultSet:
    """Positional reader over the rows of one executed query.

    Getters accept a 1-based column index or a column label (matched
    case-insensitively), plus an optional target type::

        while rs.next():
            rs.get(1, int)
            rs['name']
            rs['price', Decimal]
    """

    def __init__(self, cursor: Any, statement: Any = None, options: Any = None) -> None:
        self.dbapi_cursor = cursor
        self.statement = statement
        self.options = options
        self.columns: list[str] = [d[0] for d in (cursor.description or [])]
        self._labels = {}
        for i, name in enumerate(self.columns):
            self._labels.setdefault(str(name).lower(), i)
        self._current: tuple | None = None
        self._row_number = 0
        self._last_null = False
        self.closed = False

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()
        logger.debug('Closed ResultSet via context manager')

    def _check_open(self) -> None:
        if self.closed:
            raise ValidationError('ResultSet is closed')

    def close(self) -> None:
        """Release the cursor. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        try:
            self.dbapi_cursor.close()
        finally:
            if self.statement is not None:
                self.statement.discard_results(self)

    def next(self) -> bool:
        """Advance to the next row; False once the rows are exhausted.
        """
        self._check_open()
        row = self.dbapi_cursor.fetchone()
        if row is None:
            self._current = None
            return False
        if isinstance(row, Mapping):
            row = tuple(row.values())
        self._current = tuple(row)
        self._row_number += 1
        return True

    @property
    def row_number(self) -> int:
        """1-based number of the current row, 0 before the first advance."""
        return self._row_number

    def _column_index(self, column: int | str) -> int:
        if isinstance(column, bool):
            raise ValidationError(f'Invalid column: {column!r}')
        if isinstance(column, int):
            if not 1 <= column <= len(self.columns):
                raise ValidationError(
                    f'Column index {column} out of range (result has {len(self.columns)})'
                )
            return column - 1
        if isinstance(column, str):
            try:
                return self._labels[column.lower()]
            except KeyError:
                raise ValidationError(f'No column labeled {column!r}') from None
        raise ValidationError(f'Invalid column: {column!r}')

    def _raw(self, column: int | str) -> Any:
        self._check_open()
        if self._current is None:
            raise ValidationError('No current row; call next() first')
        value = self._current[self._column_index(column)]
        self._last_null = value is None
        return value

    def get(self, column: int | str, type_: Any = None) -> Any:
        """Read a column of the current row, converted to ``type_`` if given.

        ``type_`` may be a Python type or a SQLAlchemy type. NULL stays None.
        """
        return coerce(self._raw(column), type_)

    def __getitem__(self, key: int | str | tuple) -> Any:
        if isinstance(key, tuple):
            column, type_ = key
            return self.get(column, type_)
        return self.get(key)

    def was_null(self) -> bool:
        """Whether the last column read was NULL."""
        return self._last_null

    @property
    def row(self) -> attrdict:
        """Current row keyed by column label."""
        self._check_open()
        if self._current is None:
            raise ValidationError('No current row; call next() first')
        return attrdict(zip(self.columns, self._current))

    def get_array(self, column: int | str) -> SqlArray | None:
        """Read an array-typed column; None for NULL."""
        value = self._raw(column)
        if value is None:
            return None
        parse_json = self.options.array_json if self.options is not None else True
        return SqlArray(value, parse_json=parse_json)

    def with_array(self, column: int | str, action: Callable[[SqlArray | None], Any]) -> Any:
        """Run ``action`` on an array column, freeing the array afterwards.

        A NULL column passes None to ``action`` and nothing is freed.
        """
        arr = self.get_array(column)
        if arr is None:
            return action(None)
        try:
            return action(arr)
        finally:
            arr.free()

    def __iter__(self) -> Iterator[Self]:
        """Yield this result set once per row. Not restartable, does not close.

        Moving the cursor from inside the loop (another ``next()`` call)
        skips the rows it consumes.
        """
        while self.next():
            yield self

    def map(self, fn: Callable[[Self], Any]) -> list[Any]:
        """Collect ``fn(rs)`` for every remaining row."""
        return [fn(rs) for rs in self]

    def for_each(self, fn: Callable[[Self], Any]) -> None:
        for rs in self:
            fn(rs)

    def map_into(self, target: Any, fn: Callable[[Self], Any]) -> Any:
        """Add ``fn(rs)`` for every remaining row to ``target`` and return it.

        Uses ``target.add`` when present (sets), else ``target.append``.
        """
        add = target.add if hasattr(target, 'add') else target.append
        for rs in self:
            add(fn(rs))
        return target

    def to_dict(self, fn: Callable[[Self], tuple[Any, Any]],
                target: dict | None = None) -> dict:
        """Build a mapping from ``fn(rs) -> (key, value)`` pairs.

        Later rows overwrite earlier ones with the same key.
        """
        target = {} if target is None else target
        for rs in self:
            key, value = fn(rs)
            target[key] = value
        return target

    def to_dict_by(self, key_fn: Callable[[Self], Any], value_fn: Callable[[Self], Any],
                   target: dict | None = None) -> dict:
        """Build a mapping from separate key and value functions."""
        target = {} if target is None else target
        for rs in self:
            target[key_fn(rs)] = value_fn(rs)
        return target
