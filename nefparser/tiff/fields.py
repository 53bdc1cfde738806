"""Typed decoding of IFD entry values.

``base_offset`` is the absolute position that out-of-line value offsets are
relative to: 0 for the top-level TIFF structure, the nested TIFF header for
maker-note entries. Callers always pass it explicitly.
"""

import struct
from typing import List

from nefparser.exceptions import InvalidFieldValueError, UnsupportedFieldTypeError
from nefparser.tiff.parser import (
    IFDEntry,
    TIFF_TYPES,
    TYPE_ASCII,
    TYPE_BYTE,
    TYPE_IFD,
    TYPE_LONG,
    TYPE_RATIONAL,
    TYPE_SBYTE,
    TYPE_SHORT,
    TYPE_SLONG,
    TYPE_SRATIONAL,
    TYPE_SSHORT,
    TYPE_UNDEFINED,
    check_bounds,
)

INTEGER_TYPES = (TYPE_BYTE, TYPE_SHORT, TYPE_LONG,
                 TYPE_SBYTE, TYPE_SSHORT, TYPE_SLONG, TYPE_IFD)
RAW_TYPES = (TYPE_UNDEFINED, TYPE_BYTE)


def _require_type(entry: IFDEntry, *dtypes: int) -> None:
    if entry.dtype not in dtypes:
        raise UnsupportedFieldTypeError(
            f'{entry.tag_name}: type {entry.type_name} cannot be decoded here')


def value_offset(entry: IFDEntry, base_offset: int = 0) -> int:
    """Absolute buffer position of the entry's data."""
    if entry.is_inline:
        return entry.entry_offset + 8
    return base_offset + entry.value


def read_value_bytes(entry: IFDEntry, buffer, base_offset: int = 0) -> bytes:
    """Raw bytes of the entry's data, exactly ``count * type size`` long."""
    size = entry.total_size
    if entry.is_inline:
        return entry.value_bytes[:size]
    start = base_offset + entry.value
    check_bounds(buffer, start, size, f'{entry.tag_name} value')
    return bytes(buffer[start:start + size])


def decode_ascii(entry: IFDEntry, buffer, base_offset: int = 0) -> str:
    """Decode an ASCII entry, dropping trailing NUL terminators."""
    _require_type(entry, TYPE_ASCII)
    raw = read_value_bytes(entry, buffer, base_offset)
    return raw.rstrip(b'\x00').decode('ascii', errors='replace')


def decode_undefined(entry: IFDEntry, buffer, base_offset: int = 0) -> bytes:
    """Return the raw payload of an UNDEFINED (or BYTE) entry."""
    _require_type(entry, *RAW_TYPES)
    return read_value_bytes(entry, buffer, base_offset)


def decode_integers(entry: IFDEntry, buffer, base_offset: int = 0) -> List[int]:
    """Decode all values of a BYTE/SHORT/LONG (or signed) entry."""
    _require_type(entry, *INTEGER_TYPES)
    fmt_char = TIFF_TYPES[entry.dtype][1]
    raw = read_value_bytes(entry, buffer, base_offset)
    return list(struct.unpack(entry.endian + fmt_char * entry.count, raw))


def decode_integer(entry: IFDEntry, buffer, base_offset: int = 0) -> int:
    """Decode the first value of an integer entry."""
    values = decode_integers(entry, buffer, base_offset)
    if not values:
        raise InvalidFieldValueError(f'{entry.tag_name}: entry has no values')
    return values[0]


def _rational_pairs(entry: IFDEntry, buffer, base_offset: int) -> List[tuple]:
    fmt_char = 'I' if entry.dtype == TYPE_RATIONAL else 'i'
    raw = read_value_bytes(entry, buffer, base_offset)
    values = struct.unpack(entry.endian + fmt_char * (2 * entry.count), raw)
    return list(zip(values[0::2], values[1::2]))


def _divide(entry: IFDEntry, num: int, den: int) -> float:
    if den == 0:
        raise InvalidFieldValueError(f'{entry.tag_name}: rational {num}/0 has a zero denominator')
    return num / den


def decode_rationals(entry: IFDEntry, buffer, base_offset: int = 0) -> List[float]:
    """Decode every RATIONAL value of the entry as floats."""
    _require_type(entry, TYPE_RATIONAL)
    return [_divide(entry, num, den)
            for num, den in _rational_pairs(entry, buffer, base_offset)]


def decode_rational(entry: IFDEntry, buffer, base_offset: int = 0) -> float:
    """Decode the first RATIONAL value: numerator / denominator.

    A rational is 8 bytes so the value field is always an offset. A zero
    denominator is a FormatError rather than infinity.
    """
    values = decode_rationals(entry, buffer, base_offset)
    if not values:
        raise InvalidFieldValueError(f'{entry.tag_name}: entry has no values')
    return values[0]


def decode_srational(entry: IFDEntry, buffer, base_offset: int = 0) -> float:
    """Decode the first SRATIONAL value (signed numerator and denominator)."""
    _require_type(entry, TYPE_SRATIONAL)
    pairs = _rational_pairs(entry, buffer, base_offset)
    if not pairs:
        raise InvalidFieldValueError(f'{entry.tag_name}: entry has no values')
    return _divide(entry, *pairs[0])
