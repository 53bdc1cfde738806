"""NEF orchestrator: header -> IFD0 -> Exif IFD -> Nikon maker-note -> lens data.

The walk is a single forward pass through ``ParseState``. IFD0 and the Exif
IFD are mandatory and any structural failure there is fatal; the maker-note
and the lens data are optional and degrade to warnings on the record.

Nothing here touches the filesystem. ``parse_nef`` takes bytes and returns
a ``MetadataRecord``; see ``nefparser.extractor`` for file handling.
"""

import enum
import logging
from typing import Callable, Dict, Optional

from nefparser.exceptions import (
    DecryptError,
    FormatError,
    InvalidContainerError,
    InvalidFieldValueError,
    MissingExifDirectoryError,
    NEFError,
    UnsupportedFieldTypeError,
)
from nefparser.models import MetadataRecord, PendingLensData
from nefparser.nikon import makernote as mn
from nefparser.nikon.lens_ids import LensTable, format_lens_key
from nefparser.tiff import parser as tp
from nefparser.tiff.fields import (
    RAW_TYPES,
    decode_ascii,
    decode_integer,
    decode_integers,
    decode_rational,
    decode_rationals,
    decode_srational,
    decode_undefined,
    value_offset,
)
from nefparser.tiff.parser import IFD_COUNT_SIZE, Directory, IFDEntry, read_directory, read_header

logger = logging.getLogger(__name__)

METERING_MODES = {
    0: 'Unknown',
    1: 'Average',
    2: 'CenterWeighted',
    3: 'Spot',
    4: 'MultiSpot',
    5: 'MultiSegment',
    6: 'Partial',
}
METERING_OTHER = 'Other'

Handler = Callable[[IFDEntry, int], None]


class ParseState(enum.IntEnum):
    START = 0
    HEADER_VALIDATED = 1
    IFD0_WALKED = 2
    EXIF_LOCATED = 3
    EXIF_WALKED = 4
    MAKERNOTE_LOCATED = 5
    MAKERNOTE_VALIDATED = 6
    MAKERNOTE_WALKED = 7
    LENS_RESOLVED = 8
    DONE = 9


def _text(value: str) -> str:
    # Nikon pads maker-note strings with spaces
    return value.strip()


class NEFParser:
    """Decode the metadata of one NEF held in memory.

    A parser instance walks its buffer once. States only move forward;
    sections that are absent (no maker-note, no lens data) are skipped
    over rather than revisited.
    """

    def __init__(self, buffer, lens_table: Optional[LensTable] = None):
        self.buffer = buffer
        self.lens_table = lens_table if lens_table is not None else LensTable.default()
        self.state = ParseState.START
        self.record = MetadataRecord()

        self._exif_offset: Optional[int] = None
        self._makernote_offset: Optional[int] = None
        self._pending_lens: Optional[PendingLensData] = None
        self._date_time: Optional[str] = None
        self._iso_info: Optional[int] = None
        self._makernote_iso: Optional[int] = None
        self._exif_iso: Optional[int] = None

        self._ifd0_handlers: Dict[int, Handler] = {
            tp.TAG_MAKE: self._on_make,
            tp.TAG_MODEL: self._on_model,
            tp.TAG_DATE_TIME: self._on_date_time,
            tp.TAG_DATE_TIME_ORIGINAL: self._on_date_time_original,
            tp.TAG_SUB_IFDS: self._on_sub_ifds,
            tp.TAG_EXIF_IFD_POINTER: self._on_exif_pointer,
        }
        self._exif_handlers: Dict[int, Handler] = {
            tp.TAG_EXPOSURE_TIME: self._on_exposure_time,
            tp.TAG_FNUMBER: self._on_f_number,
            tp.TAG_ISO_SPEED_RATINGS: self._on_iso_speed_ratings,
            tp.TAG_DATE_TIME_ORIGINAL: self._on_date_time_original,
            tp.TAG_SHUTTER_SPEED_VALUE: self._on_shutter_speed_value,
            tp.TAG_APERTURE_VALUE: self._on_aperture_value,
            tp.TAG_METERING_MODE: self._on_metering_mode,
            tp.TAG_FOCAL_LENGTH: self._on_focal_length,
            tp.TAG_MAKER_NOTE: self._on_maker_note,
        }
        self._makernote_handlers: Dict[int, Handler] = {
            mn.NIKON_TAG_MAKERNOTE_VERSION: self._on_makernote_version,
            mn.NIKON_TAG_ISO: self._on_nikon_iso,
            mn.NIKON_TAG_QUALITY: self._on_quality,
            mn.NIKON_TAG_WHITE_BALANCE: self._on_white_balance,
            mn.NIKON_TAG_FOCUS_MODE: self._on_focus_mode,
            mn.NIKON_TAG_FLASH_SETTING: self._on_flash_setting,
            mn.NIKON_TAG_SERIAL_NUMBER: self._on_serial_number,
            mn.NIKON_TAG_ISO_INFO: self._on_iso_info,
            mn.NIKON_TAG_LENS_TYPE: self._on_lens_type,
            mn.NIKON_TAG_LENS: self._on_lens,
            mn.NIKON_TAG_LENS_DATA: self._on_lens_data,
            mn.NIKON_TAG_SHUTTER_COUNT: self._on_shutter_count,
        }

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def parse(self) -> MetadataRecord:
        """Run the full walk and return the record.

        Raises InvalidContainerError, TruncatedBufferError or
        MissingExifDirectoryError for a file that cannot be decoded at all.
        Errors raised after the header was accepted carry the partially
        filled record as ``exc.record``.
        """
        header = read_header(self.buffer, 0)
        if not header.is_little_endian:
            raise InvalidContainerError('Big-endian (MM) containers are not NEF')
        self._advance(ParseState.HEADER_VALIDATED)

        try:
            self._walk_ifd0(header.first_ifd_absolute)
            self._advance(ParseState.IFD0_WALKED)
            self._locate_exif()
            self._advance(ParseState.EXIF_LOCATED)
            self._walk_exif()
            self._advance(ParseState.EXIF_WALKED)
        except NEFError as e:
            if e.record is None:
                e.record = self.record
            raise

        if self._makernote_offset is not None:
            self._advance(ParseState.MAKERNOTE_LOCATED)
            self._parse_makernote()
        if self._pending_lens is not None:
            self._resolve_lens()
            self._advance(ParseState.LENS_RESOLVED)

        self._finish()
        self._advance(ParseState.DONE)
        return self.record

    def _advance(self, state: ParseState) -> None:
        if state <= self.state:
            raise RuntimeError(
                f'Parser state cannot move from {self.state.name} to {state.name}')
        logger.debug('%s -> %s', self.state.name, state.name)
        self.state = state

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.record.warnings.append(message)

    def _dispatch(self, directory: Directory, handlers: Dict[int, Handler],
                  base_offset: int, section: str) -> None:
        """Call the handler for each known tag; unknown tags are ignored.

        A tag with an unexpected type or an undecodable value is skipped with
        a warning. Truncation propagates to the caller.
        """
        for entry in directory:
            handler = handlers.get(entry.tag_id)
            if handler is None:
                continue
            try:
                handler(entry, base_offset)
            except (UnsupportedFieldTypeError, InvalidFieldValueError) as e:
                self._warn(f'{section}: {e}')

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _walk_ifd0(self, offset: int) -> None:
        directory = read_directory(self.buffer, offset)
        self._dispatch(directory, self._ifd0_handlers, 0, 'IFD0')
        next_offset = directory.next_ifd_offset
        if next_offset:
            self.record.next_ifd_offset = next_offset

    def _locate_exif(self) -> None:
        offset = self._exif_offset
        if not offset:
            raise MissingExifDirectoryError('IFD0 has no Exif IFD pointer')
        if offset + IFD_COUNT_SIZE > len(self.buffer):
            raise MissingExifDirectoryError(
                f'Exif IFD pointer {offset} is outside the {len(self.buffer)}-byte buffer')
        logger.debug('Exif IFD at 0x%X', offset)

    def _walk_exif(self) -> None:
        directory = read_directory(self.buffer, self._exif_offset)
        self._dispatch(directory, self._exif_handlers, 0, 'Exif')

    def _parse_makernote(self) -> None:
        try:
            header = mn.read_makernote_header(self.buffer, self._makernote_offset)
            self._advance(ParseState.MAKERNOTE_VALIDATED)
            logger.debug('Maker-note type 0x%04X, IFD at 0x%X, base 0x%X',
                          header.version, header.ifd_offset, header.base_offset)
            directory = read_directory(self.buffer, header.ifd_offset, header.endian)
            self._dispatch(directory, self._makernote_handlers,
                           header.base_offset, 'Maker-note')
        except FormatError as e:
            self._pending_lens = None
            self._warn(f'Maker-note skipped: {e}')
            return
        self._advance(ParseState.MAKERNOTE_WALKED)

    def _resolve_lens(self) -> None:
        pending = self._pending_lens
        record = self.record
        pending.lens_type = record.lens_type
        pending.serial_number = record.serial_number
        pending.shutter_count = record.shutter_count
        try:
            result = mn.resolve_lens(self.buffer, pending, self.lens_table)
        except (DecryptError, FormatError) as e:
            self._warn(f'Lens data skipped: {e}')
            return

        record.lens_model = result.model
        record.lens_data_version = result.version
        if result.key is not None:
            record.lens_id_key = format_lens_key(result.key)
        if result.reason:
            self._warn(f'Lens unknown: {result.reason}')

    def _finish(self) -> None:
        record = self.record
        if record.datetime_original is None:
            record.datetime_original = self._date_time
        for iso in (self._iso_info, self._makernote_iso, self._exif_iso):
            if iso:
                record.iso = iso
                break

    # ------------------------------------------------------------------
    # IFD0 handlers
    # ------------------------------------------------------------------

    def _on_make(self, entry, base):
        self.record.make = decode_ascii(entry, self.buffer, base)

    def _on_model(self, entry, base):
        self.record.model = decode_ascii(entry, self.buffer, base)

    def _on_date_time(self, entry, base):
        self._date_time = decode_ascii(entry, self.buffer, base)

    def _on_date_time_original(self, entry, base):
        self.record.datetime_original = decode_ascii(entry, self.buffer, base)

    def _on_sub_ifds(self, entry, base):
        # Only the first sub-IFD (the full-size preview) is recorded
        # Two pointers fit in 8 bytes but are out-of-line under the TIFF rule
        offsets = decode_integers(entry, self.buffer, base)
        if offsets:
            self.record.preview_ifd_offset = offsets[0]

    def _on_exif_pointer(self, entry, base):
        self._exif_offset = decode_integer(entry, self.buffer, base)

    # ------------------------------------------------------------------
    # Exif handlers
    # ------------------------------------------------------------------

    def _on_exposure_time(self, entry, base):
        self.record.exposure_time = decode_rational(entry, self.buffer, base)

    def _on_f_number(self, entry, base):
        self.record.f_number = decode_rational(entry, self.buffer, base)

    def _on_iso_speed_ratings(self, entry, base):
        self._exif_iso = decode_integer(entry, self.buffer, base)

    def _on_shutter_speed_value(self, entry, base):
        self.record.shutter_speed_value = decode_srational(entry, self.buffer, base)

    def _on_aperture_value(self, entry, base):
        self.record.aperture_value = decode_rational(entry, self.buffer, base)

    def _on_metering_mode(self, entry, base):
        mode = decode_integer(entry, self.buffer, base)
        self.record.metering_mode = METERING_MODES.get(mode, METERING_OTHER)

    def _on_focal_length(self, entry, base):
        self.record.focal_length = decode_rational(entry, self.buffer, base)

    def _on_maker_note(self, entry, base):
        self._makernote_offset = value_offset(entry, base)
        logger.debug('Maker-note at 0x%X (%d bytes)', self._makernote_offset, entry.count)

    # ------------------------------------------------------------------
    # Maker-note handlers (base is the nested TIFF header)
    # ------------------------------------------------------------------

    def _on_makernote_version(self, entry, base):
        raw = decode_undefined(entry, self.buffer, base)
        self.record.makernote_version = raw.rstrip(b'\x00').decode('ascii', errors='replace')

    def _on_nikon_iso(self, entry, base):
        # Two SHORTs; the second is the ISO setting
        values = decode_integers(entry, self.buffer, base)
        if len(values) > 1:
            self._makernote_iso = values[1]

    def _on_quality(self, entry, base):
        self.record.quality = _text(decode_ascii(entry, self.buffer, base))

    def _on_white_balance(self, entry, base):
        self.record.white_balance = _text(decode_ascii(entry, self.buffer, base))

    def _on_focus_mode(self, entry, base):
        self.record.focus_mode = _text(decode_ascii(entry, self.buffer, base))

    def _on_flash_setting(self, entry, base):
        self.record.flash_setting = _text(decode_ascii(entry, self.buffer, base))

    def _on_serial_number(self, entry, base):
        self.record.serial_number = _text(decode_ascii(entry, self.buffer, base))

    def _on_iso_info(self, entry, base):
        payload = decode_undefined(entry, self.buffer, base)
        if len(payload) <= mn.ISO_INFO_ISO_OFFSET:
            raise InvalidFieldValueError('ISOInfo: payload is empty')
        self._iso_info = mn.iso_from_raw(payload[mn.ISO_INFO_ISO_OFFSET])

    def _on_lens_type(self, entry, base):
        self.record.lens_type = decode_integer(entry, self.buffer, base) & 0xFF

    def _on_lens(self, entry, base):
        self.record.lens_spec = mn.format_lens_spec(
            decode_rationals(entry, self.buffer, base))

    def _on_lens_data(self, entry, base):
        if entry.dtype not in RAW_TYPES:
            raise UnsupportedFieldTypeError(
                f'LensData: type {entry.type_name} is not a byte array')
        self._pending_lens = PendingLensData(
            offset=value_offset(entry, base), length=entry.total_size)

    def _on_shutter_count(self, entry, base):
        self.record.shutter_count = decode_integer(entry, self.buffer, base)


def parse_nef(buffer, lens_table: Optional[LensTable] = None) -> MetadataRecord:
    """Decode the metadata of a NEF held in ``buffer``.

    ``lens_table`` defaults to the built-in Nikon lens IDs. The buffer is
    never modified or retained.
    """
    return NEFParser(buffer, lens_table).parse()
