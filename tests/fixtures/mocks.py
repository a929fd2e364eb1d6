"""
Mock DB-API connections for statement tests.

Every ``cursor()`` call on the mock connection hands out a new MagicMock
cursor, recorded in ``cn.cursors`` in creation order, so tests can tell the
statement's own cursor from the per-query result cursors.

Usage:
    def test_update(create_mock_connection):
        cn = create_mock_connection(rowcount=lambda params: params[0])
        ...
        assert cn.cursors[0].close.call_count == 1
"""
from unittest.mock import MagicMock

import pytest


def _create_mock_connection(rowcount=1, description=None, rows=()):
    """
    Create a mock DB-API connection.

    Args:
        rowcount: Fixed rowcount, or a callable receiving the execute
                  parameters and returning the rowcount for that call
        description: cursor.description reported after execute
        rows: rows handed out by fetchone, in order, to every cursor

    Returns
        MagicMock connection whose cursors are collected in ``cn.cursors``
    """
    cn = MagicMock()
    cn.cursors = []

    def make_cursor():
        cursor = MagicMock()
        cursor.rowcount = -1
        cursor.description = description
        remaining = list(rows)

        def execute(operation, params=None):
            cursor.rowcount = rowcount(params) if callable(rowcount) else rowcount

        def fetchone():
            return remaining.pop(0) if remaining else None

        cursor.execute.side_effect = execute
        cursor.fetchone.side_effect = fetchone
        cn.cursors.append(cursor)
        return cursor

    cn.cursor.side_effect = make_cursor
    return cn


@pytest.fixture
def create_mock_connection():
    """
    Fixture that provides a factory function to create mock connections.

    Example usage:
        def test_batch(create_mock_connection):
            cn = create_mock_connection(rowcount=lambda params: params[0])
    """
    def factory(rowcount=1, description=None, rows=()):
        return _create_mock_connection(rowcount, description, rows)

    return factory


@pytest.fixture
def mock_cn(create_mock_connection):
    """Mock connection whose executes report the first parameter as rowcount."""
    return create_mock_connection(rowcount=lambda params: params[0] if params else 0)
