"""Tests for the CLI interface."""

import json

import pytest
from click.testing import CliRunner

import nefparser
from nefparser.cli import main
from tests.conftest import (
    build_full_nef,
    build_lens_data,
    build_makernote,
    nikon_makernote_entries,
)


@pytest.fixture
def runner():
    return CliRunner()


class TestVersion:
    def test_version(self, runner):
        result = runner.invoke(main, ['--version'])
        assert result.exit_code == 0
        assert nefparser.__version__ in result.output


class TestInfoCommand:
    def test_info(self, runner, tmp_nef):
        result = runner.invoke(main, ['--no-color', 'info', str(tmp_nef)])
        assert result.exit_code == 0
        assert 'File: DSC_0001.NEF' in result.output
        assert 'Camera Model = NIKON Z 6' in result.output
        assert 'Shutter Count = 48213' in result.output
        assert 'Lens = AF-S Nikkor 24-70mm f/2.8E ED VR' in result.output

    def test_info_minimal(self, runner, tmp_nef_minimal):
        result = runner.invoke(main, ['info', str(tmp_nef_minimal)])
        assert result.exit_code == 0
        assert 'Camera Model = TestCam' in result.output
        assert 'Exposure Time = 1/250 s' in result.output

    def test_info_corrupt(self, runner, tmp_nef_corrupt):
        result = runner.invoke(main, ['info', str(tmp_nef_corrupt)])
        assert result.exit_code == 1
        assert 'Error' in result.output

    def test_info_directory_rejected(self, runner, tmp_path):
        result = runner.invoke(main, ['info', str(tmp_path)])
        assert result.exit_code == 1

    def test_info_partial(self, runner, tmp_path):
        makernote = build_makernote(nikon_makernote_entries(), magic=b'Canon\x00')
        f = tmp_path / 'partial.nef'
        f.write_bytes(build_full_nef(makernote=makernote))
        result = runner.invoke(main, ['info', str(f)])
        assert result.exit_code == 0
        assert 'Warning: Maker-note skipped' in result.output
        assert 'Partial record' in result.output

    def test_info_missing_path(self, runner, tmp_path):
        result = runner.invoke(main, ['info', str(tmp_path / 'nope.nef')])
        assert result.exit_code != 0

    def test_debug_flag(self, runner, tmp_nef, monkeypatch):
        calls = []
        monkeypatch.setattr('nefparser.cli.configure_logging', calls.append)
        result = runner.invoke(main, ['--debug', 'info', str(tmp_nef)])
        assert result.exit_code == 0
        assert calls == [True]


class TestLensIdsOption:
    def _unknown_lens_nef(self, tmp_path):
        lens_data = build_lens_data(key7=bytes(7))
        f = tmp_path / 'mystery.nef'
        f.write_bytes(build_full_nef(nikon_makernote_entries(lens_data=lens_data)))
        return f

    def test_custom_lens(self, runner, tmp_path):
        nef = self._unknown_lens_nef(tmp_path)
        config = tmp_path / 'lenses.json'
        config.write_text(json.dumps({'lenses': [['00 00 00 00 00 00 00 4E', 'Mystery Lens']]}))
        result = runner.invoke(main, ['--lens-ids', str(config), 'info', str(nef)])
        assert result.exit_code == 0
        assert 'Lens = Mystery Lens' in result.output

    def test_without_config_lens_unknown(self, runner, tmp_path):
        nef = self._unknown_lens_nef(tmp_path)
        result = runner.invoke(main, ['info', str(nef)])
        assert 'Lens = unknown' in result.output

    def test_bad_config(self, runner, tmp_path, tmp_nef):
        config = tmp_path / 'lenses.json'
        config.write_text(json.dumps({'lenses': [['00 11', 'Short key']]}))
        result = runner.invoke(main, ['--lens-ids', str(config), 'info', str(tmp_nef)])
        assert result.exit_code == 2


class TestScanCommand:
    def test_scan_single_file(self, runner, tmp_nef):
        result = runner.invoke(main, ['scan', str(tmp_nef)])
        assert result.exit_code == 0
        assert 'Scanning 1 file(s)' in result.output
        assert 'ok' in result.output

    def test_scan_directory_with_error(self, runner, nef_dir):
        result = runner.invoke(main, ['--no-color', 'scan', str(nef_dir)])
        assert result.exit_code == 1
        assert 'Scanning 3 file(s)' in result.output
        assert 'ERROR' in result.output
        assert 'Errors:  1' in result.output

    def test_scan_verbose(self, runner, tmp_nef):
        result = runner.invoke(main, ['scan', str(tmp_nef), '--verbose'])
        assert result.exit_code == 0
        assert 'Camera Model = NIKON Z 6' in result.output

    def test_scan_parallel(self, runner, nef_dir):
        result = runner.invoke(main, ['--no-color', 'scan', str(nef_dir), '--workers', '2'])
        assert result.exit_code == 1
        assert 'Parsed:  2' in result.output

    def test_scan_json_output(self, runner, nef_dir, tmp_path):
        json_file = tmp_path / 'results.json'
        runner.invoke(main, ['scan', str(nef_dir), '--json-out', str(json_file)])
        data = json.loads(json_file.read_text())
        assert len(data) == 3
        assert data[0]['metadata']['model'] == 'NIKON Z 6'
        assert data[0]['error'] is None
        assert data[2]['error'] is not None

    def test_scan_log_file(self, runner, nef_dir, tmp_path):
        log_file = tmp_path / 'scan.log'
        runner.invoke(main, ['scan', str(nef_dir), '--log', str(log_file)])
        text = log_file.read_text()
        assert '[INFO]' in text
        assert '[ERROR]' in text

    def test_scan_empty_directory(self, runner, tmp_path):
        empty = tmp_path / 'empty'
        empty.mkdir()
        result = runner.invoke(main, ['scan', str(empty)])
        assert result.exit_code == 0
        assert 'No NEF files found' in result.output
