import pytest
from dbext.connection import ConnectionWrapper, wrap
from dbext.options import StatementOptions


def test_init_defaults():
    """Test default initialization"""
    options = StatementOptions()

    assert options.batch_size == 0
    assert options.paramstyle is None
    assert options.array_json is True
    assert options.appname is not None


def test_explicit_options():
    options = StatementOptions(batch_size=100, paramstyle='pyformat', appname='loader')

    assert options.batch_size == 100
    assert options.paramstyle == 'pyformat'
    assert options.appname == 'loader'


def test_validation():
    """Test validation rules"""
    with pytest.raises(ValueError):
        StatementOptions(paramstyle='dollar')

    with pytest.raises(ValueError):
        StatementOptions(batch_size='10')


def test_wrap_with_keywords(create_mock_connection):
    cn = wrap(create_mock_connection(), batch_size=3)

    assert isinstance(cn, ConnectionWrapper)
    assert cn.options.batch_size == 3
    assert cn.paramstyle == 'qmark'


def test_wrap_with_dict(create_mock_connection):
    cn = wrap(create_mock_connection(), {'batch_size': 5, 'paramstyle': 'named'})

    assert cn.options.batch_size == 5
    assert cn.paramstyle == 'named'


def test_wrap_returns_existing_wrapper(create_mock_connection):
    cn = wrap(create_mock_connection())

    assert wrap(cn) is cn
    rewrapped = wrap(cn, batch_size=2)
    assert rewrapped is not cn
    assert rewrapped.dbapi_connection is cn.dbapi_connection
    assert rewrapped.options.batch_size == 2


if __name__ == '__main__':
    __import__('pytest').main([__file__])
