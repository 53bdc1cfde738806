"""Shared test fixtures -- synthetic TIFF/NEF/maker-note/lens-data generators."""

import struct
import pytest

from nefparser.nikon.cipher import encrypt
from nefparser.nikon.makernote import LENS_ID_OFFSETS

# TIFF types used by the builders
BYTE, ASCII, SHORT, LONG, RATIONAL, UNDEFINED, SRATIONAL = 1, 2, 3, 4, 5, 7, 10

TAG_MAKE = 0x010F
TAG_MODEL = 0x0110
TAG_DATE_TIME = 0x0132
TAG_SUB_IFDS = 0x014A
TAG_EXIF_IFD = 0x8769
TAG_EXPOSURE_TIME = 0x829A
TAG_FNUMBER = 0x829D
TAG_ISO = 0x8827
TAG_DATE_TIME_ORIGINAL = 0x9003
TAG_SHUTTER_SPEED = 0x9201
TAG_APERTURE = 0x9202
TAG_METERING_MODE = 0x9207
TAG_FOCAL_LENGTH = 0x920A
TAG_MAKER_NOTE = 0x927C

NIKON_SERIAL = '6012345'
NIKON_SHUTTER_COUNT = 48213
LENS_TYPE = 0x4E

# First seven key bytes of the AF-S 24-70mm f/2.8E VR; the eighth is LensType
LENS_KEY_24_70 = bytes.fromhex('AA48375C2424C5')


def ascii_value(text):
    """NUL-terminated ASCII payload."""
    return text.encode('ascii') + b'\x00'


def rational(num, den, endian='<'):
    return struct.pack(endian + 'II', num, den)


def srational(num, den, endian='<'):
    return struct.pack(endian + 'ii', num, den)


def pack_ifd(entries, start, base=0, endian='<', next_ifd=0):
    """Serialize one IFD placed at absolute ``start``, followed by its data.

    Args:
        entries: List of (tag_id, type_id, count, value) tuples. An int value
            is written into the value field as-is. A bytes value of up to 4
            bytes is stored inline; longer bytes go to the data area.
        start: Absolute position the IFD will occupy in the final buffer.
        base: Position that out-of-line offsets are written relative to.
        next_ifd: Value of the next-IFD pointer.

    Returns:
        bytes: The IFD followed by its out-of-line data.
    """
    n = len(entries)
    data_start = start + 2 + 12 * n + 4
    ifd = struct.pack(endian + 'H', n)
    data = b''

    for tag_id, type_id, count, value in entries:
        ifd += struct.pack(endian + 'HHI', tag_id, type_id, count)
        if isinstance(value, bytes) and len(value) <= 4:
            ifd += value.ljust(4, b'\x00')
        elif isinstance(value, bytes):
            ifd += struct.pack(endian + 'I', data_start + len(data) - base)
            data += value
            if len(data) % 2:
                data += b'\x00'    # word alignment
        else:
            ifd += struct.pack(endian + 'I', value)

    ifd += struct.pack(endian + 'I', next_ifd)
    return ifd + data


def build_tiff(entries, endian='<', next_ifd=0):
    """Build a single-IFD TIFF in memory with the IFD at offset 8."""
    bo = b'II' if endian == '<' else b'MM'
    header = bo + struct.pack(endian + 'HI', 42, 8)
    return header + pack_ifd(entries, 8, endian=endian, next_ifd=next_ifd)


def build_makernote(entries, endian='<', magic=b'Nikon\x00', version=0x0210):
    """Build a type-3 Nikon maker-note.

    The result is position independent: all offsets inside it are relative
    to the nested TIFF header at byte 10.
    """
    bo = b'II' if endian == '<' else b'MM'
    header = magic + struct.pack('>H', version) + b'\x00\x00'
    header += bo + struct.pack(endian + 'HI', 42, 8)
    return header + pack_ifd(entries, 8, base=0, endian=endian)


def build_lens_data(version=b'0204', key7=LENS_KEY_24_70, serial=NIKON_SERIAL,
                    shutter_count=NIKON_SHUTTER_COUNT, size=0x40):
    """Build a lens-data block, encrypted the way the camera writes it.

    ``key7`` lands at the version's LensIDNumber offset; everything after
    the 4-byte version is encrypted for versions 0201 and later.
    """
    offset = LENS_ID_OFFSETS[int(version)]
    plain = bytearray(version + bytes(size - len(version)))
    plain[offset:offset + len(key7)] = key7
    if int(version) < 201:
        return bytes(plain)
    return bytes(plain[:4]) + encrypt(bytes(plain[4:]), serial, shutter_count)


def nikon_makernote_entries(serial=NIKON_SERIAL, shutter_count=NIKON_SHUTTER_COUNT,
                            lens_type=LENS_TYPE, lens_data=None):
    """A typical Nikon maker-note IFD; pass None to leave an entry out."""
    entries = [(0x0001, UNDEFINED, 4, b'0211')]
    entries.append((0x0002, SHORT, 2, struct.pack('<HH', 0, 200)))
    entries.append((0x0004, ASCII, 8, b'RAW    \x00'))
    entries.append((0x0005, ASCII, 13, b'AUTO        \x00'))
    entries.append((0x0007, ASCII, 7, b'AF-C  \x00'))
    if serial is not None:
        entries.append((0x001D, ASCII, len(serial) + 1, ascii_value(serial)))
    entries.append((0x0025, UNDEFINED, 14, bytes([0x48]) + bytes(13)))    # ISO 200
    if lens_type is not None:
        entries.append((0x0083, BYTE, 1, bytes([lens_type])))
    entries.append((0x0084, RATIONAL, 4,
                    rational(240, 10) + rational(700, 10)
                    + rational(28, 10) + rational(28, 10)))
    if lens_data is None:
        lens_data = build_lens_data(serial=serial or NIKON_SERIAL,
                                    shutter_count=shutter_count or 0)
    entries.append((0x0098, UNDEFINED, len(lens_data), lens_data))
    if shutter_count is not None:
        entries.append((0x00A7, LONG, 1, shutter_count))
    return entries


def build_nef(ifd0_entries=(), exif_entries=None, makernote=None, next_ifd=0):
    """Build a little-endian NEF: header, IFD0, Exif IFD, optional maker-note.

    The Exif pointer is added to IFD0 whenever ``exif_entries`` or
    ``makernote`` is given; the maker-note goes into the Exif IFD.
    """
    ifd0 = list(ifd0_entries)
    exif = None if exif_entries is None else list(exif_entries)
    if makernote is not None:
        exif = (exif or []) + [(TAG_MAKER_NOTE, UNDEFINED, len(makernote), makernote)]

    exif_offset = None
    if exif is not None:
        ifd0.append((TAG_EXIF_IFD, LONG, 1, 0))
        exif_offset = 8 + len(pack_ifd(ifd0, 8))
        ifd0[-1] = (TAG_EXIF_IFD, LONG, 1, exif_offset)

    result = b'II' + struct.pack('<HI', 42, 8) + pack_ifd(ifd0, 8, next_ifd=next_ifd)
    if exif is not None:
        result += pack_ifd(exif, exif_offset)
    return result


def full_exif_entries():
    return [
        (TAG_EXPOSURE_TIME, RATIONAL, 1, rational(1, 250)),
        (TAG_FNUMBER, RATIONAL, 1, rational(28, 10)),
        (TAG_ISO, SHORT, 1, 200),
        (TAG_DATE_TIME_ORIGINAL, ASCII, 20, ascii_value('2023:05:14 09:12:33')),
        (TAG_METERING_MODE, SHORT, 1, 5),
        (TAG_FOCAL_LENGTH, RATIONAL, 1, rational(500, 10)),
    ]


def build_full_nef(makernote_entries=None, makernote=None):
    """A NEF with camera IFD0, full Exif IFD and a Nikon maker-note."""
    if makernote is None:
        if makernote_entries is None:
            makernote_entries = nikon_makernote_entries()
        makernote = build_makernote(makernote_entries)
    ifd0 = [
        (TAG_MAKE, ASCII, 18, ascii_value('NIKON CORPORATION')),
        (TAG_MODEL, ASCII, 10, ascii_value('NIKON Z 6')),
    ]
    return build_nef(ifd0, full_exif_entries(), makernote)


# ---------------------------------------------------------------------------
# File fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def nef_bytes():
    return build_full_nef()


@pytest.fixture
def tmp_nef(tmp_path):
    """A complete synthetic NEF on disk."""
    filepath = tmp_path / 'DSC_0001.NEF'
    filepath.write_bytes(build_full_nef())
    return filepath


@pytest.fixture
def tmp_nef_minimal(tmp_path):
    """A NEF with only a model name and an exposure time."""
    content = build_nef(
        [(TAG_MODEL, ASCII, 8, ascii_value('TestCam'))],
        [(TAG_EXPOSURE_TIME, RATIONAL, 1, rational(1, 250))],
    )
    filepath = tmp_path / 'minimal.nef'
    filepath.write_bytes(content)
    return filepath


@pytest.fixture
def tmp_nef_corrupt(tmp_path):
    """A .nef file that is not a TIFF at all."""
    filepath = tmp_path / 'corrupt.nef'
    filepath.write_bytes(b'NOT A NEF FILE AT ALL')
    return filepath


@pytest.fixture
def nef_dir(tmp_path):
    """Directory with two good NEFs, one corrupt NEF and a non-NEF file."""
    root = tmp_path / 'shoot'
    (root / 'day2').mkdir(parents=True)
    (root / 'a.nef').write_bytes(build_full_nef())
    (root / 'day2' / 'b.NEF').write_bytes(build_full_nef())
    (root / 'day2' / 'c.nef').write_bytes(b'II*\x00\xff\xff\xff\xff')
    (root / 'notes.txt').write_text('not an image')
    return root
