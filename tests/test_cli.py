"""
Tests for the faceanchor command-line interface.
"""

import json

import pytest

from faceanchor.cli import main
from faceanchor.landmarks import LandmarkFrame, LandmarkIngest


@pytest.fixture
def session(tmp_path, make_frame):
    path = tmp_path / "session.json"
    LandmarkIngest.to_json(
        [make_frame(timestamp=0.0), LandmarkFrame.empty(0.033), make_frame(timestamp=0.066)],
        path,
    )
    return path


class TestInfoCommands:
    """Commands that exit before tracking."""

    def test_list_assets(self, capsys):
        assert main(["--list-assets"]) == 0

        out = capsys.readouterr().out
        assert "Cove" in out
        assert "cove/pandan" in out
        assert "/rescaled-models/Lindy/horchata.glb" in out

    def test_save_config(self, tmp_path):
        path = tmp_path / "faceanchor.yaml"

        assert main(["--save-config", str(path)]) == 0
        assert "estimator:" in path.read_text()

    def test_unknown_asset(self, capsys):
        assert main(["--asset", "cove/neon", "--replay", "x.json"]) == 1
        assert "Configuration error" in capsys.readouterr().err


class TestReplay:
    """Test replay of recorded landmark sessions."""

    def test_writes_one_record_per_frame(self, session, tmp_path):
        output = tmp_path / "out.jsonl"

        assert main(["--replay", str(session), "-o", str(output)]) == 0

        records = [json.loads(line) for line in output.read_text().splitlines()]
        assert [r["visible"] for r in records] == [True, False, True]
        assert records[1]["transform"] is None
        assert len(records[0]["transform"]["rotation"]) == 4

    def test_stdout(self, session, capsys):
        assert main(["--replay", str(session), "--projection", "orthographic"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 3
        first = json.loads(lines[0])
        assert first["transform"]["position"][0] == pytest.approx(320.0)

    def test_missing_session(self, tmp_path, capsys):
        assert main(["--replay", str(tmp_path / "missing.json")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_invalid_session(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"source": "openpose", "frames": []}))

        assert main(["--replay", str(path)]) == 1
        assert "Invalid input" in capsys.readouterr().err
