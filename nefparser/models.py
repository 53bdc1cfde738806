"""Data models for decoded NEF metadata and parse results."""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List, Optional

# Lens model reported when lens data exists but cannot be resolved
LENS_UNKNOWN = 'unknown'


@dataclass
class MetadataRecord:
    """Metadata extracted from one NEF. Every field is None when absent."""
    make: Optional[str] = None
    model: Optional[str] = None
    datetime_original: Optional[str] = None
    exposure_time: Optional[float] = None    # seconds
    f_number: Optional[float] = None
    focal_length: Optional[float] = None     # mm
    metering_mode: Optional[str] = None
    iso: Optional[int] = None
    shutter_count: Optional[int] = None
    lens_model: Optional[str] = None
    makernote_version: Optional[str] = None

    # Additional Exif fields
    shutter_speed_value: Optional[float] = None  # APEX
    aperture_value: Optional[float] = None       # APEX

    # Additional maker-note fields
    serial_number: Optional[str] = None
    quality: Optional[str] = None
    white_balance: Optional[str] = None
    focus_mode: Optional[str] = None
    flash_setting: Optional[str] = None
    lens_type: Optional[int] = None
    lens_spec: Optional[str] = None
    lens_data_version: Optional[int] = None
    lens_id_key: Optional[str] = None

    # Structure
    preview_ifd_offset: Optional[int] = None
    next_ifd_offset: Optional[int] = None

    warnings: List[str] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        """True when a maker-note, lens or per-tag decode step degraded."""
        return bool(self.warnings)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PendingLensData:
    """Lens-data block found during the maker-note walk.

    Resolution needs the serial number and shutter count (for encrypted
    versions) and the lens type, which may appear anywhere in the same
    directory, so it runs as a post-pass once the walk has finished.
    """
    offset: int    # absolute
    length: int
    lens_type: Optional[int] = None
    serial_number: Optional[str] = None
    shutter_count: Optional[int] = None

    def missing(self, encrypted: bool = True) -> List[str]:
        """Names of prerequisites that were not collected."""
        names = []
        if self.lens_type is None:
            names.append('lens type')
        if encrypted:
            if self.serial_number is None:
                names.append('serial number')
            if self.shutter_count is None:
                names.append('shutter count')
        return names


@dataclass
class ParseResult:
    """Result of parsing a single file."""
    filepath: Path
    record: Optional[MetadataRecord] = None
    parse_time_ms: float = 0.0
    file_size: int = 0
    error: Optional[str] = None

    @property
    def is_partial(self) -> bool:
        return self.record is not None and self.record.is_partial


@dataclass
class BatchResult:
    """Result of a batch parsing run."""
    results: List[ParseResult] = field(default_factory=list)
    total_files: int = 0
    files_parsed: int = 0
    files_partial: int = 0
    files_errored: int = 0
    total_time_seconds: float = 0.0
