"""Low-level TIFF structure reader over an in-memory buffer -- stdlib only (struct module).

Every structural read goes through ``check_bounds`` first, so a truncated or
hostile file raises ``TruncatedBufferError`` instead of reading garbage.
Nothing here interprets tag values; see ``nefparser.tiff.fields`` for that.
"""

import logging
import struct
from typing import Dict, Iterator, Tuple

from nefparser.exceptions import InvalidContainerError, TruncatedBufferError

logger = logging.getLogger(__name__)

# Byte-order markers and magic
LITTLE_ENDIAN_MARKER = b'II'
BIG_ENDIAN_MARKER = b'MM'
TIFF_MAGIC = 42

TIFF_HEADER_SIZE = 8
IFD_COUNT_SIZE = 2
IFD_ENTRY_SIZE = 12
IFD_NEXT_SIZE = 4
INLINE_VALUE_SIZE = 4

# Field types
TYPE_BYTE = 1
TYPE_ASCII = 2
TYPE_SHORT = 3
TYPE_LONG = 4
TYPE_RATIONAL = 5
TYPE_SBYTE = 6
TYPE_UNDEFINED = 7
TYPE_SSHORT = 8
TYPE_SLONG = 9
TYPE_SRATIONAL = 10
TYPE_FLOAT = 11
TYPE_DOUBLE = 12
TYPE_IFD = 13

# TIFF type definitions: {type_id: (element_size_bytes, struct_format_char)}
TIFF_TYPES: Dict[int, Tuple[int, str]] = {
    TYPE_BYTE: (1, 'B'),
    TYPE_ASCII: (1, 's'),
    TYPE_SHORT: (2, 'H'),
    TYPE_LONG: (4, 'I'),
    TYPE_RATIONAL: (8, 'II'),    # num/denom
    TYPE_SBYTE: (1, 'b'),
    TYPE_UNDEFINED: (1, 's'),
    TYPE_SSHORT: (2, 'h'),
    TYPE_SLONG: (4, 'i'),
    TYPE_SRATIONAL: (8, 'ii'),
    TYPE_FLOAT: (4, 'f'),
    TYPE_DOUBLE: (8, 'd'),
    TYPE_IFD: (4, 'I'),          # sub-IFD offset
}

TYPE_NAMES: Dict[int, str] = {
    TYPE_BYTE: 'BYTE', TYPE_ASCII: 'ASCII', TYPE_SHORT: 'SHORT',
    TYPE_LONG: 'LONG', TYPE_RATIONAL: 'RATIONAL', TYPE_SBYTE: 'SBYTE',
    TYPE_UNDEFINED: 'UNDEFINED', TYPE_SSHORT: 'SSHORT', TYPE_SLONG: 'SLONG',
    TYPE_SRATIONAL: 'SRATIONAL', TYPE_FLOAT: 'FLOAT', TYPE_DOUBLE: 'DOUBLE',
    TYPE_IFD: 'IFD',
}

# IFD0 / Exif tags the NEF walker dispatches on
TAG_MAKE = 0x010F
TAG_MODEL = 0x0110
TAG_DATE_TIME = 0x0132
TAG_SUB_IFDS = 0x014A
TAG_EXPOSURE_TIME = 0x829A
TAG_FNUMBER = 0x829D
TAG_EXIF_IFD_POINTER = 0x8769
TAG_ISO_SPEED_RATINGS = 0x8827
TAG_DATE_TIME_ORIGINAL = 0x9003
TAG_SHUTTER_SPEED_VALUE = 0x9201
TAG_APERTURE_VALUE = 0x9202
TAG_METERING_MODE = 0x9207
TAG_FOCAL_LENGTH = 0x920A
TAG_MAKER_NOTE = 0x927C

TAG_NAMES: Dict[int, str] = {
    0x00FE: 'NewSubfileType', 0x0100: 'ImageWidth', 0x0101: 'ImageLength',
    0x0102: 'BitsPerSample', 0x0103: 'Compression',
    0x0106: 'PhotometricInterpretation', 0x010E: 'ImageDescription',
    TAG_MAKE: 'Make', TAG_MODEL: 'Model', 0x0111: 'StripOffsets',
    0x0112: 'Orientation', 0x0115: 'SamplesPerPixel', 0x0116: 'RowsPerStrip',
    0x0117: 'StripByteCounts', 0x011A: 'XResolution', 0x011B: 'YResolution',
    0x0128: 'ResolutionUnit', 0x0131: 'Software', TAG_DATE_TIME: 'DateTime',
    TAG_SUB_IFDS: 'SubIFDs', TAG_EXPOSURE_TIME: 'ExposureTime',
    TAG_FNUMBER: 'FNumber', TAG_EXIF_IFD_POINTER: 'ExifIFDPointer',
    TAG_ISO_SPEED_RATINGS: 'ISOSpeedRatings',
    TAG_DATE_TIME_ORIGINAL: 'DateTimeOriginal',
    TAG_SHUTTER_SPEED_VALUE: 'ShutterSpeedValue',
    TAG_APERTURE_VALUE: 'ApertureValue', TAG_METERING_MODE: 'MeteringMode',
    TAG_FOCAL_LENGTH: 'FocalLength', TAG_MAKER_NOTE: 'MakerNote',
}


def check_bounds(buffer, offset: int, length: int, what: str = 'data') -> None:
    """Raise TruncatedBufferError unless buffer[offset:offset+length] exists."""
    if offset < 0 or length < 0 or offset + length > len(buffer):
        raise TruncatedBufferError(
            f'{what} at offset {offset} ({length} bytes) exceeds buffer '
            f'of {len(buffer)} bytes')


def unpack_from(fmt: str, buffer, offset: int, what: str = 'data') -> tuple:
    """Bounds-checked struct.unpack_from."""
    check_bounds(buffer, offset, struct.calcsize(fmt), what)
    return struct.unpack_from(fmt, buffer, offset)


class IFDEntry:
    """A single 12-byte IFD entry.

    ``value`` is the value field read as an unsigned 32-bit integer in the
    directory's byte order; ``value_bytes`` is the same field as raw file
    bytes, which is what inline ASCII/UNDEFINED/BYTE data is decoded from.
    Whether the field holds the data itself or an offset to it depends on
    ``count * type size`` and is decided per entry by ``is_inline``.
    """
    __slots__ = ('tag_id', 'dtype', 'count', 'value', 'value_bytes',
                 'entry_offset', 'endian')

    def __init__(self, tag_id: int, dtype: int, count: int, value: int,
                 value_bytes: bytes, entry_offset: int, endian: str = '<'):
        self.tag_id = tag_id
        self.dtype = dtype
        self.count = count
        self.value = value
        self.value_bytes = value_bytes
        self.entry_offset = entry_offset
        self.endian = endian

    @property
    def tag_name(self) -> str:
        return TAG_NAMES.get(self.tag_id, f'Tag_0x{self.tag_id:04X}')

    @property
    def type_name(self) -> str:
        return TYPE_NAMES.get(self.dtype, f'Type_{self.dtype}')

    @property
    def elem_size(self) -> int:
        return TIFF_TYPES.get(self.dtype, (1, 'B'))[0]

    @property
    def total_size(self) -> int:
        return self.elem_size * self.count

    @property
    def is_inline(self) -> bool:
        return self.total_size <= INLINE_VALUE_SIZE

    def __repr__(self) -> str:
        return (f'IFDEntry({self.tag_name}, {self.type_name}, '
                f'count={self.count}, value=0x{self.value:08X})')


class TIFFHeader:
    """Parsed 8-byte TIFF header located at ``offset`` in the buffer."""
    __slots__ = ('endian', 'magic', 'first_ifd_offset', 'offset')

    def __init__(self, endian: str, magic: int, first_ifd_offset: int,
                 offset: int = 0):
        self.endian = endian
        self.magic = magic
        self.first_ifd_offset = first_ifd_offset
        self.offset = offset

    @property
    def is_little_endian(self) -> bool:
        return self.endian == '<'

    @property
    def first_ifd_absolute(self) -> int:
        """First IFD offset translated to an absolute buffer position."""
        return self.offset + self.first_ifd_offset


def read_header(buffer, offset: int = 0) -> TIFFHeader:
    """Read and validate a TIFF header at ``offset``.

    Accepts either byte order; callers that only support one check
    ``header.endian`` themselves. Raises InvalidContainerError for an unknown
    byte-order marker or magic, TruncatedBufferError if fewer than 8 bytes
    remain.
    """
    check_bounds(buffer, offset, TIFF_HEADER_SIZE, 'TIFF header')
    bo = bytes(buffer[offset:offset + 2])
    if bo == LITTLE_ENDIAN_MARKER:
        endian = '<'
    elif bo == BIG_ENDIAN_MARKER:
        endian = '>'
    else:
        raise InvalidContainerError(f'Unknown byte order marker {bo!r}')

    magic, ifd_offset = struct.unpack_from(endian + 'HI', buffer, offset + 2)
    if magic != TIFF_MAGIC:
        raise InvalidContainerError(f'Bad TIFF magic {magic} (expected {TIFF_MAGIC})')

    return TIFFHeader(endian, magic, ifd_offset, offset)


class Directory:
    """View over one IFD in the buffer.

    Construction validates that the entry count and every entry fit in the
    buffer; iteration then decodes entries lazily in on-disk order. Iterating
    again starts from the first entry. The next-IFD pointer is only read when
    asked for.
    """

    def __init__(self, buffer, offset: int, endian: str = '<'):
        check_bounds(buffer, offset, IFD_COUNT_SIZE, 'IFD entry count')
        (num_entries,) = struct.unpack_from(endian + 'H', buffer, offset)
        check_bounds(buffer, offset + IFD_COUNT_SIZE,
                     num_entries * IFD_ENTRY_SIZE, f'IFD with {num_entries} entries')
        self._buffer = buffer
        self.offset = offset
        self.endian = endian
        self.num_entries = num_entries

    def __len__(self) -> int:
        return self.num_entries

    def __iter__(self) -> Iterator[IFDEntry]:
        endian = self.endian
        entry_offset = self.offset + IFD_COUNT_SIZE
        for _ in range(self.num_entries):
            tag_id, dtype, count = struct.unpack_from(
                endian + 'HHI', self._buffer, entry_offset)
            value_bytes = bytes(self._buffer[entry_offset + 8:entry_offset + 12])
            (value,) = struct.unpack(endian + 'I', value_bytes)
            yield IFDEntry(tag_id, dtype, count, value, value_bytes,
                           entry_offset, endian)
            entry_offset += IFD_ENTRY_SIZE

    @property
    def end_offset(self) -> int:
        """Absolute offset of the next-IFD pointer that follows the entries."""
        return self.offset + IFD_COUNT_SIZE + self.num_entries * IFD_ENTRY_SIZE

    @property
    def next_ifd_offset(self) -> int:
        (next_offset,) = unpack_from(self.endian + 'I', self._buffer,
                                     self.end_offset, 'next IFD pointer')
        return next_offset


def read_directory(buffer, offset: int, endian: str = '<') -> Directory:
    """Open the IFD at absolute ``offset``. Raises TruncatedBufferError."""
    directory = Directory(buffer, offset, endian)
    logger.debug('IFD at 0x%X: %d entries', offset, directory.num_entries)
    return directory
