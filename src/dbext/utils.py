"""Low-level connection utilities with no internal dependencies.

These utilities work with SQLAlchemy connections and raw DBAPI
connections, and import nothing from other dbext modules, making them
safe to import without circular dependency concerns.
"""
import importlib
import logging
from typing import Any

import sqlalchemy as sa

logger = logging.getLogger(__name__)

PARAMSTYLES = ('qmark', 'numeric', 'named', 'format', 'pyformat')


def get_raw_connection(connection: Any) -> Any:
    """Extract the raw DBAPI connection from a SQLAlchemy wrapper.

    Anything that is not a SQLAlchemy connection is returned unchanged.
    """
    raw_conn = connection
    if isinstance(raw_conn, sa.engine.Connection):
        raw_conn = raw_conn.connection
    if isinstance(raw_conn, sa.pool.PoolProxiedConnection):
        raw_conn = raw_conn.driver_connection
    return raw_conn


def get_dialect_name(obj: Any) -> str:
    """Get dialect name for a database connection.
    """
    if isinstance(obj, sa.engine.Connection):
        return str(obj.engine.dialect.name).lower()

    raw_conn = get_raw_connection(obj)
    type_name = f'{type(raw_conn).__module__}.{type(raw_conn).__name__}'
    if 'psycopg' in type_name:
        return 'postgresql'
    if 'sqlite3' in type_name:
        return 'sqlite'

    raise AttributeError(f'Cannot determine dialect for {type(obj)}')


def get_paramstyle(connection: Any) -> str:
    """Look up the DB-API ``paramstyle`` of the driver behind a connection.

    The driver module is found from the connection's class module
    (``sqlite3.Connection`` -> ``sqlite3``). Falls back to ``qmark``.
    """
    raw_conn = get_raw_connection(connection)
    module_name = type(raw_conn).__module__.split('.')[0]
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        logger.debug(f'Could not import driver module {module_name}, assuming qmark')
        return 'qmark'
    style = getattr(module, 'paramstyle', 'qmark')
    if style not in PARAMSTYLES:
        logger.debug(f'Unknown paramstyle {style!r} for {module_name}, assuming qmark')
        return 'qmark'
    return style
