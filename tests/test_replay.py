"""Tests for the replay CLI: re-plan a dump and print the plan as JSON."""

from __future__ import annotations

import json
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import pytest

from joint_planner.domain.geometry import Position
from joint_planner.domain.snapshot import (
    CellType,
    Constructor,
    ConstructorCell,
    TaskingSnapshot,
)
from joint_planner.io.dump import write_tasking_dump
from joint_planner.replay import main


def _submission_dump(tmp_path: Path) -> Path:
    snapshot = TaskingSnapshot(
        cells={Position(0, 0): CellType.EMPTY, Position(0, 1): CellType.EMPTY},
        agents=(),
        constructors=(
            Constructor(
                Position(0, 0), 1, 1.0, {Position(0, 1): ConstructorCell("b1", occupied=True)}
            ),
        ),
    )
    return write_tasking_dump(snapshot, tmp_path / "dump", step=12, group="g0")


def test_replay_prints_plan(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    dump = _submission_dump(tmp_path)
    main([str(dump), "--horizon", "2", "--budget", "5"])
    payload = json.loads(capsys.readouterr().out)
    assert payload["kind"] == "tasking"
    assert payload["step"] == 12
    assert payload["group"] == "g0"
    assert payload["status"] == "OPTIMAL"
    assert payload["actions"] == []
    assert payload["constructor_actions"] == [["submit", []]]


def test_replay_reads_config_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    dump = _submission_dump(tmp_path)
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"tasking": {"horizon": 3, "budget_seconds": 5.0}}))
    main([str(dump), "--config", str(config)])
    assert json.loads(capsys.readouterr().out)["status"] == "OPTIMAL"


def test_replay_renders_plan(tmp_path: Path) -> None:
    dump = _submission_dump(tmp_path)
    out = tmp_path / "plan.png"
    main([str(dump), "--budget", "5", "--render", str(out)])
    assert out.is_file()


def test_replay_missing_config_exits(tmp_path: Path) -> None:
    dump = _submission_dump(tmp_path)
    with pytest.raises(SystemExit):
        main([str(dump), "--config", str(tmp_path / "missing.json")])


def test_replay_unknown_config_key_exits(tmp_path: Path) -> None:
    dump = _submission_dump(tmp_path)
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"bogus": 1}))
    with pytest.raises(SystemExit):
        main([str(dump), "--config", str(config)])


def test_replay_rejects_invalid_override(tmp_path: Path) -> None:
    dump = _submission_dump(tmp_path)
    with pytest.raises(SystemExit):
        main([str(dump), "--budget", "0"])


def test_replay_missing_dump_exits(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit):
        main([str(tmp_path / "nowhere")])
    assert "Cannot read dump" in capsys.readouterr().err


def test_replay_incomplete_dump_exits(tmp_path: Path) -> None:
    dump = _submission_dump(tmp_path)
    (dump / "cells.parquet").unlink()
    with pytest.raises(SystemExit):
        main([str(dump)])
