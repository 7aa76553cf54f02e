from pathlib import Path

import orjson
import pytest

from leaderstream.cli import ls


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch):
    # keep pytest's own log handlers in place
    monkeypatch.setattr(ls, "setup_logging", lambda level: None)


@pytest.fixture
def frames_file(tmp_path: Path) -> Path:
    frames = [
        {
            "topic": "team_pnl",
            "type": "snapshot",
            "data": [
                {"user": "Alpha", "teamId": "a", "pnl": 100, "ts": 1},
                {"user": "Alpha", "teamId": "a", "pnl": 110, "ts": 2},
                {"user": "Beta", "teamId": "b", "pnl": 50, "ts": 1},
                {"user": "Beta", "teamId": "b", "pnl": 40, "ts": 2},
            ],
        },
        {"topic": "team_pnl", "data": {"user": "Beta", "teamId": "b", "pnl": 90}},
        {"topic": "asset_pnl", "data": {"user": "Beta", "teamId": "b", "asset": "BTC"}},
    ]
    path = tmp_path / "frames.jsonl"
    lines = [orjson.dumps(f).decode() for f in frames]
    path.write_text("\n".join([lines[0], "", "not json", *lines[1:]]) + "\n")
    return path


def test_replay_prints_final_leaderboard(frames_file: Path, capsys):
    code = ls.main(["replay", str(frames_file)])

    assert code == 0
    result = orjson.loads(capsys.readouterr().out)
    assert result["leader_id"] == "b"
    assert result["top_k"] == 3
    assert [e["id"] for e in result["entries"]] == ["b", "a"]
    beta = result["entries"][0]
    assert beta["name"] == "Beta"
    assert beta["net_change"] == 40
    assert beta["last_value"] == 90


def test_replay_respects_overrides(frames_file: Path, capsys):
    code = ls.main(["replay", str(frames_file), "--set", "schedule.top_k=1"])

    assert code == 0
    assert orjson.loads(capsys.readouterr().out)["top_k"] == 1


def test_replay_missing_file(tmp_path: Path, capsys):
    assert ls.main(["replay", str(tmp_path / "nope.jsonl")]) == 1
    assert "not found" in capsys.readouterr().err


def test_invalid_override_fails(frames_file: Path, capsys):
    assert ls.main(["replay", str(frames_file), "--set", "schedule.top_k=0"]) == 1
    assert ls.main(["replay", str(frames_file), "--set", "schedule"]) == 1
    assert capsys.readouterr().out == ""


def test_run_url_must_be_websocket(capsys):
    assert ls.main(["run", "--url", "http://example.com"]) == 1
    assert "ws://" in capsys.readouterr().err


def test_command_required():
    with pytest.raises(SystemExit):
        ls.main([])
