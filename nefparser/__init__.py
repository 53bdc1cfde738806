"""nefparser -- Nikon NEF metadata decoder with lens-data decryption."""

__version__ = "1.0.0"

from nefparser.exceptions import (
    DecryptError,
    FormatError,
    InvalidContainerError,
    InvalidMakernoteError,
    MissingExifDirectoryError,
    NEFError,
    TruncatedBufferError,
    UnsupportedFieldTypeError,
)
from nefparser.models import BatchResult, MetadataRecord, ParseResult
from nefparser.nef import NEFParser, ParseState, parse_nef
from nefparser.nikon.lens_ids import LensTable
from nefparser.extractor import parse_batch, parse_file

__all__ = [
    "__version__",
    "NEFError",
    "FormatError",
    "InvalidContainerError",
    "TruncatedBufferError",
    "MissingExifDirectoryError",
    "InvalidMakernoteError",
    "UnsupportedFieldTypeError",
    "DecryptError",
    "MetadataRecord",
    "ParseResult",
    "BatchResult",
    "NEFParser",
    "ParseState",
    "parse_nef",
    "LensTable",
    "parse_file",
    "parse_batch",
]
