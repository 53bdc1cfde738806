"""Tests for the Nikon lens-data keystream cipher."""

import pytest

from nefparser.exceptions import DecryptError
from nefparser.nikon.cipher import (
    COUNT_TABLE,
    SERIAL_TABLE,
    decrypt,
    decrypt_in_place,
    encrypt,
    keystream,
    parse_serial,
)


class TestTables:
    def test_table_sizes(self):
        assert len(SERIAL_TABLE) == 256
        assert len(COUNT_TABLE) == 256

    def test_table_endpoints(self):
        assert SERIAL_TABLE[0] == 0xC1
        assert SERIAL_TABLE[255] == 0xC7
        assert COUNT_TABLE[0] == 0xA7
        assert COUNT_TABLE[255] == 0x2F


class TestKnownKeystream:
    """Keystream bytes computed by hand from the seed tables."""

    def test_zero_keys(self):
        # ci = 0xC1, cj = 0xA7
        assert decrypt(bytes(4), '0', 0) == bytes([0x07, 0x28, 0x0A, 0xAD])

    def test_serial_and_count_indexing(self):
        # serial 12 -> ci = 0xC7; count bytes 04^03^02^01 = 4 -> cj = 0x91
        assert decrypt(bytes(4), '12', 0x01020304) == bytes([0x31, 0x98, 0xC6, 0xBB])

    def test_serial_reduced_mod_256(self):
        assert decrypt(bytes(8), '268', 7) == decrypt(bytes(8), '12', 7)

    def test_keystream_prefix_consistent(self):
        stream = keystream('6012345', 48213)
        head = bytes(next(stream) for _ in range(16))
        assert decrypt(bytes(16), '6012345', 48213) == head


class TestSymmetry:
    def test_round_trip(self):
        plain = bytes(range(64))
        cipher = encrypt(plain, '6012345', 48213)
        assert cipher != plain
        assert decrypt(cipher, '6012345', 48213) == plain

    def test_wrong_serial_diverges(self):
        plain = bytes(range(32))
        cipher = encrypt(plain, '6012345', 48213)
        assert decrypt(cipher, '6012346', 48213) != plain

    def test_wrong_count_diverges(self):
        plain = bytes(range(32))
        cipher = encrypt(plain, '6012345', 48213)
        assert decrypt(cipher, '6012345', 48214) != plain

    def test_in_place(self):
        data = bytearray(b'lens data block!')
        original = bytes(data)
        decrypt_in_place(data, '3001234', 100)
        assert bytes(data) != original
        decrypt_in_place(data, '3001234', 100)
        assert bytes(data) == original

    def test_in_place_on_memoryview_slice(self):
        data = bytearray(b'0204' + bytes(12))
        decrypt_in_place(memoryview(data)[4:], '0', 0)
        assert data[:4] == b'0204'
        assert data[4:8] == bytes([0x07, 0x28, 0x0A, 0xAD])

    def test_empty(self):
        assert decrypt(b'', '1', 1) == b''


class TestKeyValidation:
    @pytest.mark.parametrize('serial', ['', 'ABC123', '12 34', '-5', '１２'])
    def test_bad_serial(self, serial):
        with pytest.raises(DecryptError):
            decrypt(b'\x00', serial, 1)

    def test_bad_serial_on_empty_data(self):
        with pytest.raises(DecryptError):
            decrypt(b'', 'XYZ', 1)

    def test_bad_serial_leaves_data_unchanged(self):
        data = bytearray(b'abcd')
        with pytest.raises(DecryptError):
            decrypt_in_place(data, 'NOPE', 1)
        assert data == bytearray(b'abcd')

    @pytest.mark.parametrize('count', [-1, 1 << 32, None])
    def test_bad_shutter_count(self, count):
        with pytest.raises(DecryptError):
            decrypt(b'\x00', '1', count)

    def test_parse_serial_strips_whitespace(self):
        assert parse_serial(' 6012345 ') == 6012345
