"""Nikon lens identification by composite 8-byte key.

The key is LensIDNumber, LensFStops, MinFocalLength, MaxFocalLength,
MaxApertureAtMinFocal, MaxApertureAtMaxFocal, MCUVersion and LensType, in
that order. The built-in table is deliberately short; sites can add their
own lenses from a JSON file without modifying source code.
"""

import json
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional

LENS_KEY_SIZE = 8


class LensIdEntry(NamedTuple):
    """A known lens: composite key and model name."""
    key: bytes
    name: str


def parse_lens_key(text: str) -> bytes:
    """Parse a key written as eight hex bytes, e.g. ``'E3 40 76 A6 38 40 DF 4E'``."""
    try:
        key = bytes(int(part, 16) for part in text.split())
    except ValueError:
        raise ValueError(f'Lens key {text!r} is not a list of hex bytes') from None
    if len(key) != LENS_KEY_SIZE:
        raise ValueError(f'Lens key {text!r} has {len(key)} bytes, expected {LENS_KEY_SIZE}')
    return key


def format_lens_key(key: bytes) -> str:
    """Inverse of parse_lens_key."""
    return ' '.join(f'{b:02X}' for b in key)


# See https://exiftool.org/TagNames/Nikon.html#LensID
NIKON_LENS_IDS: List[LensIdEntry] = [
    LensIdEntry(parse_lens_key('E3 40 76 A6 38 40 DF 4E'),
                'Tamron SP 150-600mm f/5-6.3 Di VC USD G2'),
    LensIdEntry(parse_lens_key('AA 48 37 5C 24 24 C5 4E'),
                'AF-S Nikkor 24-70mm f/2.8E ED VR'),
    LensIdEntry(parse_lens_key('AE 3C 80 A0 3C 3C C9 4E'),
                'AF-S Nikkor 200-500mm f/5.6E ED VR'),
    LensIdEntry(parse_lens_key('01 58 50 50 14 14 02 00'),
                'AF Nikkor 50mm f/1.8'),
    LensIdEntry(parse_lens_key('02 42 44 5C 2A 34 02 00'),
                'AF Zoom-Nikkor 35-70mm f/3.3-4.5'),
    LensIdEntry(parse_lens_key('05 54 50 50 0C 0C 04 00'),
                'AF Nikkor 50mm f/1.4'),
]


def lookup(key: bytes, table: Optional[List[LensIdEntry]] = None) -> Optional[str]:
    """Return the lens name for ``key``, or None when no entry matches.

    Linear scan; the first matching entry wins.
    """
    key = bytes(key)
    if len(key) != LENS_KEY_SIZE:
        raise ValueError(f'Lens key must be {LENS_KEY_SIZE} bytes, got {len(key)}')
    for entry in (NIKON_LENS_IDS if table is None else table):
        if entry.key == key:
            return entry.name
    return None


@dataclass
class LensTable:
    """Configurable lens-ID table.

    Holds a list of LensIdEntry; user entries are appended after the
    built-in ones, so a built-in match still wins on duplicate keys.
    """

    entries: List[LensIdEntry] = field(default_factory=list)

    @classmethod
    def default(cls) -> 'LensTable':
        """Return the built-in table."""
        return cls(entries=list(NIKON_LENS_IDS))

    @classmethod
    def from_json(cls, path) -> 'LensTable':
        """Load extra lenses from a JSON file and merge with the defaults.

        JSON format::

            {
              "lenses": [["E3 40 76 A6 38 40 DF 4E", "Lens name"], ...]
            }
        """
        with open(str(path), 'r') as f:
            data = json.load(f)

        table = cls.default()
        for raw_key, name in data.get('lenses', []):
            table.entries.append(LensIdEntry(parse_lens_key(raw_key), str(name)))
        return table

    def lookup(self, key: bytes) -> Optional[str]:
        return lookup(key, self.entries)

    def __len__(self) -> int:
        return len(self.entries)
