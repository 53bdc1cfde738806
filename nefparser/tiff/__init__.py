"""Bounds-checked TIFF structure reader and field decoders.

Re-exports the public names so ``from nefparser.tiff import X`` works for
both the structural walker and the typed decoders.
"""

# --- parser.py: types, constants, header/IFD reading ---
from nefparser.tiff.parser import (  # noqa: F401
    TIFF_TYPES,
    TAG_NAMES,
    TIFF_MAGIC,
    LITTLE_ENDIAN_MARKER,
    BIG_ENDIAN_MARKER,
    TIFF_HEADER_SIZE,
    IFD_ENTRY_SIZE,
    TYPE_BYTE,
    TYPE_ASCII,
    TYPE_SHORT,
    TYPE_LONG,
    TYPE_RATIONAL,
    TYPE_SBYTE,
    TYPE_UNDEFINED,
    TYPE_SSHORT,
    TYPE_SLONG,
    TYPE_SRATIONAL,
    TYPE_FLOAT,
    TYPE_DOUBLE,
    TYPE_IFD,
    Directory,
    IFDEntry,
    TIFFHeader,
    check_bounds,
    unpack_from,
    read_header,
    read_directory,
)

# --- fields.py: typed value decoding ---
from nefparser.tiff.fields import (  # noqa: F401
    value_offset,
    read_value_bytes,
    decode_ascii,
    decode_undefined,
    decode_integer,
    decode_integers,
    decode_rational,
    decode_rationals,
    decode_srational,
)
