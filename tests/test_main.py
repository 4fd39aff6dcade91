"""Tests for the command-line entry point."""

import json

import pytest

import sightread.settings
from sightread.__main__ import main


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(sightread.settings, "SETTINGS_PATH", tmp_path / "settings.json")


def test_invalid_bpm_exits_with_status_2(capsys):
    assert main(["--bpm", "0"]) == 2
    assert "BPM must be positive" in capsys.readouterr().err


def test_unreadable_song_exits_with_status_2(tmp_path, capsys):
    song = tmp_path / "song.txt"
    song.write_text("")
    assert main(["--song", str(song)]) == 2
    assert "Unsupported file format" in capsys.readouterr().err


def test_unknown_scale_rejected_by_parser():
    with pytest.raises(SystemExit) as excinfo:
        main(["--scale", "H"])
    assert excinfo.value.code == 2


def test_invalid_saved_settings_exit_with_status_2(capsys):
    sightread.settings.SETTINGS_PATH.write_text(json.dumps({"practice": {"bpm": 0}}))
    assert main([]) == 2
    assert "BPM must be positive" in capsys.readouterr().err
