"""
SQL placeholder handling for prepared statements.

Statements are written with qmark-style ``?`` markers. Before execution the
SQL is tokenized once and each marker is rewritten into the DB-API
paramstyle of the driver:

    SQL → Tokenize → Count markers → Rewrite for paramstyle → Build params

Markers inside string literals, quoted identifiers and comments are left
alone.
"""
import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()     # 'text' or "identifier"
    COMMENT = auto()            # -- line or /* block */
    PLACEHOLDER = auto()        # ?


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str
    start: int
    end: int


_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<comment>--[^\n]*|/\*.*?\*/)
    |(?P<qmark>\?)
""", re.VERBOSE | re.DOTALL)


def tokenize_sql(sql: str) -> list[Token]:
    """Parse SQL into tokens in a single pass.

    Parameters
        sql: SQL query string

    Returns
        List of tokens preserving all SQL text
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()

        if start > last_end:
            tokens.append(Token(
                type=TokenType.SQL_TEXT,
                text=sql[last_end:start],
                start=last_end,
                end=start
            ))

        if match.group('string'):
            ttype = TokenType.STRING_LITERAL
        elif match.group('comment'):
            ttype = TokenType.COMMENT
        else:
            ttype = TokenType.PLACEHOLDER

        tokens.append(Token(type=ttype, text=match.group(0), start=start, end=end))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(
            type=TokenType.SQL_TEXT,
            text=sql[last_end:],
            start=last_end,
            end=len(sql)
        ))

    return tokens


def count_placeholders(sql: str | None) -> int:
    """Count the ``?`` markers outside literals and comments.
    """
    if not sql or '?' not in sql:
        return 0
    return sum(1 for token in tokenize_sql(sql) if token.type == TokenType.PLACEHOLDER)


def _marker(paramstyle: str, position: int) -> str:
    """Placeholder text for the 1-based position in the given paramstyle."""
    if paramstyle == 'qmark':
        return '?'
    if paramstyle == 'numeric':
        return f':{position}'
    if paramstyle == 'named':
        return f':p{position}'
    if paramstyle in {'format', 'pyformat'}:
        return '%s'
    raise ValueError(f'Unsupported paramstyle: {paramstyle}')


def standardize_placeholders(sql: str, paramstyle: str = 'qmark') -> str:
    """Rewrite ``?`` markers into the driver's paramstyle.

    For the ``format`` and ``pyformat`` styles every literal ``%`` is doubled,
    since those drivers interpret ``%`` anywhere in the query text.

    Parameters
        sql: SQL query string with ``?`` markers
        paramstyle: DB-API paramstyle of the target driver

    Returns
        SQL with placeholders in the target style
    """
    if not sql:
        return sql

    percent_style = paramstyle in {'format', 'pyformat'}
    if paramstyle == 'qmark':
        return sql
    if '?' not in sql and not (percent_style and '%' in sql):
        return sql

    result = []
    position = 0
    for token in tokenize_sql(sql):
        if token.type == TokenType.PLACEHOLDER:
            position += 1
            result.append(_marker(paramstyle, position))
        elif percent_style:
            result.append(token.text.replace('%', '%%'))
        else:
            result.append(token.text)
    return ''.join(result)


def build_parameters(values: Sequence[Any], paramstyle: str = 'qmark') -> tuple | dict:
    """Arrange positional values for the driver's paramstyle.

    ``named`` drivers get a mapping keyed ``p1``, ``p2``... to match
    ``standardize_placeholders``; every other style gets a tuple.
    """
    if paramstyle == 'named':
        return {f'p{i}': value for i, value in enumerate(values, start=1)}
    return tuple(values)
