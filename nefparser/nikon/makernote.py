"""Nikon maker-note (type 3) layout: header, tag IDs, ISO and lens-data decoding.

A type-3 maker-note starts with ``Nikon\\0``, a 2-byte version and 2 reserved
bytes, then a complete TIFF header. Offsets inside the maker-note are
relative to that nested header, not to the start of the file.

See http://lclevy.free.fr/nef/ and https://exiftool.org/TagNames/Nikon.html.
"""

import logging
import math
import struct
from typing import List, NamedTuple, Optional

from nefparser.exceptions import InvalidContainerError, InvalidMakernoteError
from nefparser.models import LENS_UNKNOWN, PendingLensData
from nefparser.nikon.cipher import decrypt_in_place
from nefparser.nikon.lens_ids import LENS_KEY_SIZE, LensTable
from nefparser.tiff.parser import TIFFHeader, check_bounds, read_header

logger = logging.getLogger(__name__)

# Maker-note tag IDs
NIKON_TAG_MAKERNOTE_VERSION = 0x0001
NIKON_TAG_ISO = 0x0002
NIKON_TAG_QUALITY = 0x0004
NIKON_TAG_WHITE_BALANCE = 0x0005
NIKON_TAG_FOCUS_MODE = 0x0007
NIKON_TAG_FLASH_SETTING = 0x0008
NIKON_TAG_SERIAL_NUMBER = 0x001D
NIKON_TAG_ISO_INFO = 0x0025
NIKON_TAG_LENS_TYPE = 0x0083
NIKON_TAG_LENS = 0x0084
NIKON_TAG_LENS_DATA = 0x0098
NIKON_TAG_SHUTTER_COUNT = 0x00A7

MAKERNOTE_MAGIC = b'Nikon'
MAKERNOTE_MAGIC_SIZE = 6
# magic(6) + version(2) + reserved(2); the nested TIFF header starts here
MAKERNOTE_TIFF_OFFSET = 10
MAKERNOTE_HEADER_SIZE = MAKERNOTE_TIFF_OFFSET + 8

# Byte within the ISOInfo payload holding the logarithmic ISO code
ISO_INFO_ISO_OFFSET = 0

LENS_DATA_VERSION_SIZE = 4
# Lens data versions from 0201 on are encrypted after the version prefix
LENS_DATA_ENCRYPTED_VERSION = 201

# Offset of LensIDNumber (first byte of the lens-ID key) per lens data version
LENS_ID_OFFSETS = {
    100: 0x06,
    101: 0x0B,
    201: 0x0B,
    202: 0x0B,
    203: 0x0B,
    204: 0x0C,
}


class MakernoteHeader:
    """Parsed maker-note header at absolute ``offset``."""
    __slots__ = ('magic', 'version', 'tiff_header', 'offset')

    def __init__(self, magic: bytes, version: int, tiff_header: TIFFHeader,
                 offset: int):
        self.magic = magic
        self.version = version
        self.tiff_header = tiff_header
        self.offset = offset

    @property
    def base_offset(self) -> int:
        """Absolute position that maker-note value offsets are relative to."""
        return self.offset + MAKERNOTE_TIFF_OFFSET

    @property
    def ifd_offset(self) -> int:
        return self.base_offset + self.tiff_header.first_ifd_offset

    @property
    def endian(self) -> str:
        return self.tiff_header.endian


def read_makernote_header(buffer, offset: int) -> MakernoteHeader:
    """Validate the Nikon signature and nested TIFF header at ``offset``.

    Raises InvalidMakernoteError on a signature or nested-header mismatch and
    TruncatedBufferError if the header does not fit in the buffer.
    """
    check_bounds(buffer, offset, MAKERNOTE_HEADER_SIZE, 'maker-note header')
    magic = bytes(buffer[offset:offset + MAKERNOTE_MAGIC_SIZE])
    # Trailing control byte after "Nikon" is not part of the signature
    if magic[:len(MAKERNOTE_MAGIC)] != MAKERNOTE_MAGIC:
        raise InvalidMakernoteError(f'Maker-note signature {magic!r} is not Nikon')

    (version,) = struct.unpack_from('>H', buffer, offset + MAKERNOTE_MAGIC_SIZE)
    try:
        tiff_header = read_header(buffer, offset + MAKERNOTE_TIFF_OFFSET)
    except InvalidContainerError as e:
        raise InvalidMakernoteError(f'Maker-note TIFF header: {e}') from e

    if not tiff_header.is_little_endian:
        logger.debug('Maker-note at 0x%X uses big-endian byte order', offset)
    return MakernoteHeader(magic, version, tiff_header, offset)


def iso_from_raw(raw: int) -> int:
    """ISO from the ISOInfo code: 100 * 2**(raw/12 - 5), rounded up to a multiple of 10."""
    value = round(100 * 2 ** (raw / 12 - 5), 6)
    if value % 10:
        return int(math.ceil(value / 10) * 10)
    return int(value)


def format_lens_spec(values: List[float]) -> Optional[str]:
    """Format the Lens tag (min/max focal length, max aperture at each) as text."""
    if len(values) < 4:
        return None
    min_fl, max_fl, min_ap, max_ap = values[:4]
    focal = f'{min_fl:g}mm' if min_fl == max_fl else f'{min_fl:g}-{max_fl:g}mm'
    aperture = f'f/{min_ap:g}' if min_ap == max_ap else f'f/{min_ap:g}-{max_ap:g}'
    return f'{focal} {aperture}'


class LensResult(NamedTuple):
    """Outcome of lens-data resolution."""
    model: str
    version: int
    key: Optional[bytes] = None
    reason: Optional[str] = None    # why the model is unknown, if it is


def read_lens_data_version(buffer, pending: PendingLensData) -> int:
    """Parse the 4-byte ASCII version that prefixes the lens data, e.g. b'0204'."""
    if pending.length < LENS_DATA_VERSION_SIZE:
        raise InvalidMakernoteError(f'Lens data is only {pending.length} bytes')
    check_bounds(buffer, pending.offset, LENS_DATA_VERSION_SIZE, 'lens data version')
    raw = bytes(buffer[pending.offset:pending.offset + LENS_DATA_VERSION_SIZE])
    if not raw.isdigit():
        raise InvalidMakernoteError(f'Lens data version {raw!r} is not numeric')
    return int(raw)


def resolve_lens(buffer, pending: PendingLensData,
                 table: Optional[LensTable] = None) -> LensResult:
    """Decrypt the lens data if needed and identify the lens.

    The source buffer is never written; decryption runs on a copy of the
    lens-data range. Missing prerequisites give an ``unknown`` model rather
    than decrypting with absent keys. Raises DecryptError for a malformed
    serial number and TruncatedBufferError/InvalidMakernoteError for a
    damaged block.
    """
    if table is None:
        table = LensTable.default()

    version = read_lens_data_version(buffer, pending)
    encrypted = version >= LENS_DATA_ENCRYPTED_VERSION

    missing = pending.missing(encrypted)
    if missing:
        reason = f'lens data {version:04d} needs {", ".join(missing)}'
        logger.debug('Lens not resolved: %s', reason)
        return LensResult(LENS_UNKNOWN, version, reason=reason)

    key_offset = LENS_ID_OFFSETS.get(version)
    if key_offset is None:
        reason = f'lens data version {version:04d} is not supported'
        logger.debug('Lens not resolved: %s', reason)
        return LensResult(LENS_UNKNOWN, version, reason=reason)

    if key_offset + LENS_KEY_SIZE > pending.length:
        raise InvalidMakernoteError(
            f'Lens data {version:04d} is {pending.length} bytes, too short for the lens ID')
    check_bounds(buffer, pending.offset, pending.length, 'lens data')
    data = bytearray(buffer[pending.offset:pending.offset + pending.length])

    if encrypted:
        decrypt_in_place(memoryview(data)[LENS_DATA_VERSION_SIZE:],
                         pending.serial_number, pending.shutter_count)
        logger.debug('Decrypted %d bytes of lens data %04d',
                     pending.length - LENS_DATA_VERSION_SIZE, version)

    key = bytearray(data[key_offset:key_offset + LENS_KEY_SIZE])
    key[-1] = pending.lens_type & 0xFF
    key = bytes(key)

    model = table.lookup(key)
    if model is None:
        logger.debug('Lens ID %s not in table', key.hex())
        model = LENS_UNKNOWN
    return LensResult(model, version, key)
