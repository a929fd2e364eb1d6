"""
Type handling for bind parameters and column values.

This module provides:
- Unsigned widening: reinterpret 8/16/32/64-bit patterns as unsigned values
- Signed range checks for the short/int/long setters
- coerce: type-directed conversion of raw column values
- SQL type tags: Python types or SQLAlchemy types naming a target type
"""
import datetime
import decimal
import logging
from typing import Any

import dateutil.parser
import sqlalchemy as sa
from dbext.exceptions import TypeConversionError, ValidationError

logger = logging.getLogger(__name__)

UBYTE_MASK = (1 << 8) - 1
USHORT_MASK = (1 << 16) - 1
UINT_MASK = (1 << 32) - 1
ULONG_MASK = (1 << 64) - 1

_MASKS = {8: UBYTE_MASK, 16: USHORT_MASK, 32: UINT_MASK, 64: ULONG_MASK}

_TRUE_STRINGS = {'true', 't', 'yes', 'y', '1', 'on'}
_FALSE_STRINGS = {'false', 'f', 'no', 'n', '0', 'off'}


# Integer widths

def check_signed(value: Any, bits: int) -> int:
    """Validate that value fits a signed integer of the given width."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'Expected int for {bits}-bit slot, got {type(value).__name__}')
    low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    if not low <= value <= high:
        raise ValidationError(f'{value} out of range for signed {bits}-bit slot [{low}, {high}]')
    return value


def to_unsigned(value: Any, bits: int) -> int:
    """Reinterpret a value's bit pattern as an unsigned integer of ``bits`` width.

    Accepts anything from the signed minimum up to the unsigned maximum, so
    ``-1`` and ``2**bits - 1`` both yield the all-ones value. The result is
    the value masked against the precomputed all-ones mask for the width.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'Expected int for unsigned {bits}-bit value, got {type(value).__name__}')
    mask = _MASKS[bits]
    if not -(1 << (bits - 1)) <= value <= mask:
        raise ValidationError(f'{value} out of range for unsigned {bits}-bit value')
    return value & mask


def ulong_to_decimal(value: Any) -> decimal.Decimal:
    """Mask a 64-bit pattern to its unsigned value and return it as Decimal.

    >>> ulong_to_decimal(-1)
    Decimal('18446744073709551615')
    """
    return decimal.Decimal(to_unsigned(value, 64))


# Type-directed coercion

def resolve_type(type_: Any) -> type | None:
    """Resolve a type tag to the Python type values are coerced into.

    Accepts a Python type, a SQLAlchemy type class or instance, or None.
    SQLAlchemy types without a ``python_type`` resolve to None.
    """
    if type_ is None:
        return None
    if isinstance(type_, type) and issubclass(type_, sa.types.TypeEngine):
        type_ = type_()
    if isinstance(type_, sa.types.TypeEngine):
        try:
            return type_.python_type
        except NotImplementedError:
            logger.debug(f'No python_type for {type_!r}, leaving values unconverted')
            return None
    if isinstance(type_, type):
        return type_
    raise ValidationError(f'Not a type: {type_!r}')


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(f'Cannot interpret {value!r} as bool')
    return bool(value)


def _to_int(value: Any) -> int:
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f'{value} is not integral')
    if isinstance(value, decimal.Decimal) and value != value.to_integral_value():
        raise ValueError(f'{value} is not integral')
    return int(value)


def _to_decimal(value: Any) -> decimal.Decimal:
    if isinstance(value, float):
        return decimal.Decimal(str(value))
    return decimal.Decimal(value)


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode()
    return bytes(value)


def _to_datetime(value: Any) -> datetime.datetime:
    if isinstance(value, bytes):
        value = value.decode()
    if isinstance(value, datetime.date):
        return datetime.datetime(value.year, value.month, value.day)
    return dateutil.parser.isoparse(value)


def _to_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    return _to_datetime(value).date()


def _to_time(value: Any) -> datetime.time:
    if isinstance(value, datetime.datetime):
        return value.time()
    if isinstance(value, bytes):
        value = value.decode()
    return datetime.time.fromisoformat(value)


def _to_str(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


_CONVERTERS = {
    bool: _to_bool,
    int: _to_int,
    float: float,
    decimal.Decimal: _to_decimal,
    str: _to_str,
    bytes: _to_bytes,
    datetime.datetime: _to_datetime,
    datetime.date: _to_date,
    datetime.time: _to_time,
}


def _is_exact(value: Any, target: type) -> bool:
    """Whether value already satisfies target without conversion."""
    # bool and datetime subclass int and date
    if target is int and isinstance(value, bool):
        return False
    if target is datetime.date and isinstance(value, datetime.datetime):
        return False
    return isinstance(value, target)


def coerce(value: Any, type_: Any = None) -> Any:
    """Convert a raw value into the requested type.

    None values pass through unchanged, as do values already of the target
    type. Types without a registered converter are called with the value.

    Raises TypeConversionError when the conversion fails.
    """
    target = resolve_type(type_)
    if value is None or target is None:
        return value
    if _is_exact(value, target):
        return value
    converter = _CONVERTERS.get(target, target)
    try:
        return converter(value)
    except (TypeError, ValueError, ArithmeticError, OverflowError) as err:
        raise TypeConversionError(
            f'Cannot convert {type(value).__name__} value {value!r} to {target.__name__}'
        ) from err
