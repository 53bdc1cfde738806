"""Nikon maker-note support: lens-data cipher, lens-ID table, maker-note layout."""

from nefparser.nikon.cipher import decrypt, decrypt_in_place, encrypt  # noqa: F401
from nefparser.nikon.lens_ids import (  # noqa: F401
    LensIdEntry,
    LensTable,
    NIKON_LENS_IDS,
    lookup,
)
from nefparser.nikon.makernote import (  # noqa: F401
    MakernoteHeader,
    iso_from_raw,
    read_makernote_header,
    resolve_lens,
)
