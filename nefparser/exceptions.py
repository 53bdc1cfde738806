"""Exceptions raised while decoding NEF files.

Fatal errors raised by the orchestrator carry whatever had already been
decoded as ``record`` so the caller can still report partial metadata.
"""


class NEFError(Exception):
    """Base class for all NEF decoding errors."""

    def __init__(self, message: str = '', record=None):
        super().__init__(message)
        self.record = record


class FormatError(NEFError):
    """The buffer does not follow the TIFF/NEF layout."""


class InvalidContainerError(FormatError):
    """Top-level byte order or magic does not identify a little-endian NEF."""


class TruncatedBufferError(FormatError):
    """An offset or length would read past the end of the buffer."""


class MissingExifDirectoryError(FormatError):
    """IFD0 has no usable Exif IFD pointer."""


class InvalidMakernoteError(FormatError):
    """Maker-note signature or nested TIFF header is not Nikon's."""


class UnsupportedFieldTypeError(FormatError):
    """A decoder was invoked on an entry of a different TIFF type."""


class InvalidFieldValueError(FormatError):
    """A field holds a value that cannot be decoded (zero denominator, no values)."""


class DecryptError(NEFError):
    """Lens data cannot be decrypted with the collected keys."""
