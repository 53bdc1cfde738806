"""Human-readable and JSON renderings of decoded metadata."""

from fractions import Fraction
from typing import List, Optional

from nefparser.models import MetadataRecord, ParseResult

# (label, attribute) in display order
RECORD_FIELDS = [
    ('Camera Make', 'make'),
    ('Camera Model', 'model'),
    ('Date/Time Original', 'datetime_original'),
    ('Exposure Time', 'exposure_time'),
    ('F-Number', 'f_number'),
    ('Focal Length', 'focal_length'),
    ('Metering Mode', 'metering_mode'),
    ('ISO', 'iso'),
    ('Shutter Count', 'shutter_count'),
    ('Serial Number', 'serial_number'),
    ('Lens', 'lens_model'),
    ('Lens Spec', 'lens_spec'),
    ('Lens ID', 'lens_id_key'),
    ('Quality', 'quality'),
    ('White Balance', 'white_balance'),
    ('Focus Mode', 'focus_mode'),
    ('Flash Setting', 'flash_setting'),
    ('Makernote Version', 'makernote_version'),
]


def format_exposure(seconds: Optional[float]) -> Optional[str]:
    """Format an exposure time: ``1/250 s`` below one second, ``2.5 s`` above."""
    if seconds is None:
        return None
    if 0 < seconds < 1:
        frac = Fraction(seconds).limit_denominator(100000)
        if frac.numerator == 1:
            return f'1/{frac.denominator} s'
        return f'1/{1 / seconds:.0f} s'
    return f'{seconds:g} s'


def _format_value(attr: str, value) -> str:
    if attr == 'exposure_time':
        return format_exposure(value)
    if attr == 'f_number':
        return f'f/{value:g}'
    if attr == 'focal_length':
        return f'{value:g} mm'
    return str(value)


def format_record(record: MetadataRecord) -> List[str]:
    """Render the populated fields as ``Label = value`` lines.

    Absent fields are omitted; warnings follow the fields.
    """
    lines = []
    for label, attr in RECORD_FIELDS:
        value = getattr(record, attr)
        if value is None:
            continue
        lines.append(f'{label} = {_format_value(attr, value)}')
    for warning in record.warnings:
        lines.append(f'Warning: {warning}')
    return lines


def record_to_dict(record: Optional[MetadataRecord]) -> Optional[dict]:
    """JSON-ready dict of a record, plus its partial flag."""
    if record is None:
        return None
    data = record.to_dict()
    data['is_partial'] = record.is_partial
    return data


def result_to_dict(result: ParseResult) -> dict:
    """JSON-ready dict for one file of a batch."""
    return {
        'file': str(result.filepath),
        'file_size': result.file_size,
        'parse_time_ms': round(result.parse_time_ms, 1),
        'error': result.error,
        'metadata': record_to_dict(result.record),
    }
