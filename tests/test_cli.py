from __future__ import annotations

import json
from pathlib import Path

import pytest

from otasync.cli import main

HISTORY = {
    "1.0.0": {"enabled": True, "mandatory": False, "downloadUrl": "https://cdn/1.zip", "packageHash": "a"},
    "1.1.0": {"enabled": True, "mandatory": True, "downloadUrl": "https://cdn/2.zip", "packageHash": "b"},
    "1.2.0": {"enabled": False, "mandatory": False, "downloadUrl": "https://cdn/3.zip", "packageHash": "c"},
}


@pytest.fixture
def history_file(tmp_path: Path) -> Path:
    path = tmp_path / "history.json"
    path.write_text(json.dumps(HISTORY), encoding="utf-8")
    return path


def _run(capsys: pytest.CaptureFixture[str], *argv: str) -> tuple[int, dict]:
    rc = main(list(argv))
    out = capsys.readouterr().out
    return rc, json.loads(out) if rc == 0 else {}


def test_latest(history_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rc, out = _run(capsys, "latest", str(history_file))
    assert rc == 0
    assert out["version"] == "1.1.0"
    assert out["packageHash"] == "b"


def test_mandatory(history_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rc, out = _run(capsys, "mandatory", str(history_file), "--runtime", "1.0.0")
    assert rc == 0
    assert out == {"mandatory": True}


def test_rollback(capsys: pytest.CaptureFixture[str]) -> None:
    rc, out = _run(capsys, "rollback", "--runtime", "1.2.0", "--latest", "1.1.0")
    assert rc == 0
    assert out == {"rollback": True}


def test_check_withdrawn_release(history_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rc, out = _run(capsys, "check", str(history_file), "--runtime", "1.2.0")
    assert rc == 0
    assert out["update_info"]["is_available"] is True
    assert out["update_info"]["label"] == "1.1.0"
    assert out["update_info"]["is_mandatory"] is True


def test_no_enabled_release(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "history.yaml"
    path.write_text("'1.0.0': {enabled: false}\n", encoding="utf-8")
    assert main(["latest", str(path)]) == 1
    assert "There is no latest release." in capsys.readouterr().err


def test_invalid_version(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["rollback", "--runtime", "one", "--latest", "1.0.0"]) == 1
    assert "ERROR" in capsys.readouterr().err


def test_missing_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["latest", str(tmp_path / "absent.json")]) == 1
