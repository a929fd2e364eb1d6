"""
Unit tests for ResultSet navigation, getters and collection helpers.
"""
import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import sqlalchemy as sa
from dbext.exceptions import TypeConversionError, ValidationError
from dbext.options import StatementOptions
from dbext.results import ResultSet, SqlArray

ROWS = [
    (1, 'alice', '10.5', '2024-01-02', '[1, 2, 3]'),
    (2, 'bob', None, None, None),
    (3, 'carol', '7', '2024-03-04', '["x"]'),
]
DESCRIPTION = [('id',), ('Name',), ('amount',), ('created',), ('tags',)]


def make_cursor(rows=ROWS, description=DESCRIPTION):
    cursor = MagicMock()
    cursor.description = description
    cursor.fetchone.side_effect = list(rows) + [None] * 3
    return cursor


@pytest.fixture
def rs():
    return ResultSet(make_cursor())


class TestNavigation:

    def test_next_until_exhausted(self, rs):
        assert rs.row_number == 0
        assert rs.next() and rs.next() and rs.next()
        assert rs.row_number == 3
        assert not rs.next()

    def test_columns(self, rs):
        assert rs.columns == ['id', 'Name', 'amount', 'created', 'tags']

    def test_get_before_next(self, rs):
        with pytest.raises(ValidationError, match='next'):
            rs.get(1)

    def test_mapping_rows(self):
        cursor = make_cursor(rows=[{'id': 9, 'Name': 'z'}], description=[('id',), ('Name',)])
        rs = ResultSet(cursor)
        rs.next()
        assert rs['name'] == 'z'


class TestGetters:

    def test_get_by_index_and_label(self, rs):
        rs.next()
        assert rs.get(1) == 1
        assert rs.get('name') == 'alice'
        assert rs.get('NAME') == 'alice'
        assert rs[2] == 'alice'

    def test_type_directed(self, rs):
        rs.next()
        assert rs.get('amount', Decimal) == Decimal('10.5')
        assert rs['amount', float] == 10.5
        assert rs[1, str] == '1'
        assert rs['created', datetime.date] == datetime.date(2024, 1, 2)
        assert rs['id', sa.Numeric] == Decimal(1)

    def test_null_stays_none(self, rs):
        rs.next()
        rs.next()
        assert rs.get('amount', Decimal) is None
        assert rs.was_null()
        rs.get('id')
        assert not rs.was_null()

    def test_conversion_failure(self, rs):
        rs.next()
        with pytest.raises(TypeConversionError):
            rs.get('name', int)

    @pytest.mark.parametrize('column', [0, 6, 'missing', 1.0, True])
    def test_invalid_column(self, rs, column):
        rs.next()
        with pytest.raises(ValidationError):
            rs.get(column)

    def test_row(self, rs):
        rs.next()
        row = rs.row
        assert row['Name'] == 'alice'
        assert row.id == 1


class TestIteration:

    def test_iter_yields_self_per_row(self, rs):
        seen = [(r is rs, r[1]) for r in rs]
        assert seen == [(True, 1), (True, 2), (True, 3)]

    def test_iter_not_restartable(self, rs):
        assert len(list(rs)) == 3
        assert list(rs) == []

    def test_iter_does_not_close(self, rs):
        list(rs)
        assert not rs.closed
        rs.dbapi_cursor.close.assert_not_called()

    def test_partial_consumption(self, rs):
        it = iter(rs)
        next(it)
        assert rs.get('id') == 1
        assert rs.map(lambda r: r['id']) == [2, 3]

    def test_manual_advance_skips_rows(self, rs):
        """Advancing inside the loop consumes rows the iterator never yields"""
        ids = []
        for r in rs:
            ids.append(r['id'])
            r.next()
        assert ids == [1, 3]

    def test_map(self, rs):
        assert rs.map(lambda r: r['name']) == ['alice', 'bob', 'carol']

    def test_for_each(self, rs):
        seen = []
        assert rs.for_each(lambda r: seen.append(r['id'])) is None
        assert seen == [1, 2, 3]

    def test_map_into_list_and_set(self):
        target = ['start']
        assert ResultSet(make_cursor()).map_into(target, lambda r: r['id']) is target
        assert target == ['start', 1, 2, 3]

        names = ResultSet(make_cursor()).map_into(set(), lambda r: r['name'])
        assert names == {'alice', 'bob', 'carol'}

    def test_to_dict(self, rs):
        result = rs.to_dict(lambda r: (r['id'], r['name']))
        assert result == {1: 'alice', 2: 'bob', 3: 'carol'}
        assert list(result) == [1, 2, 3]

    def test_to_dict_by_into_target(self, rs):
        target = {0: 'zero'}
        result = rs.to_dict_by(lambda r: r['id'], lambda r: r['name'], target)
        assert result is target
        assert result == {0: 'zero', 1: 'alice', 2: 'bob', 3: 'carol'}

    def test_to_dict_later_rows_win(self, rs):
        assert rs.to_dict(lambda r: ('k', r['id'])) == {'k': 3}

    def test_empty_results(self):
        rs = ResultSet(make_cursor(rows=[]))
        assert rs.map(lambda r: r[1]) == []
        assert rs.to_dict(lambda r: (r[1], r[2])) == {}


class TestClose:

    def test_close_once(self, rs):
        rs.close()
        rs.close()
        rs.dbapi_cursor.close.assert_called_once()

    def test_closed_rejects_use(self, rs):
        rs.close()
        with pytest.raises(ValidationError):
            rs.next()

    def test_close_detaches_from_statement(self):
        statement = MagicMock()
        rs = ResultSet(make_cursor(), statement=statement)
        rs.close()
        statement.discard_results.assert_called_once_with(rs)

    def test_context_manager(self):
        with ResultSet(make_cursor()) as rs:
            rs.next()
        assert rs.closed


class TestArrays:

    def test_sql_array_from_list(self):
        arr = SqlArray((1, 2, 3))
        assert arr.array == [1, 2, 3]
        assert len(arr) == 3
        assert arr[0] == 1
        assert list(arr) == [1, 2, 3]
        assert arr.base_type_name == 'int'

    def test_sql_array_from_json(self):
        arr = SqlArray('[null, "a"]')
        assert arr.array == [None, 'a']
        assert arr.base_type_name == 'str'

    def test_sql_array_rejects_non_arrays(self):
        with pytest.raises(TypeConversionError):
            SqlArray('{"a": 1}')
        with pytest.raises(TypeConversionError):
            SqlArray('not json')
        with pytest.raises(TypeConversionError):
            SqlArray('[1]', parse_json=False)
        with pytest.raises(TypeConversionError):
            SqlArray(5)

    def test_freed_array_rejects_access(self):
        arr = SqlArray([1])
        arr.free()
        assert arr.freed
        with pytest.raises(ValidationError):
            arr.array
        with pytest.raises(ValidationError):
            len(arr)

    def test_with_array_frees(self, rs):
        rs.next()
        captured = []

        def action(arr):
            captured.append(arr)
            return sum(arr)

        assert rs.with_array('tags', action) == 6
        assert captured[0].freed

    def test_with_array_frees_on_error(self, rs):
        rs.next()
        captured = []

        def action(arr):
            captured.append(arr)
            raise RuntimeError('failed')

        with pytest.raises(RuntimeError):
            rs.with_array(5, action)
        assert captured[0].freed

    def test_with_array_null(self, rs):
        rs.next()
        rs.next()
        assert rs.with_array('tags', lambda arr: arr) is None

    def test_json_parsing_disabled(self):
        rs = ResultSet(make_cursor(), options=StatementOptions(array_json=False))
        rs.next()
        with pytest.raises(TypeConversionError):
            rs.get_array('tags')


if __name__ == '__main__':
    __import__('pytest').main([__file__])
