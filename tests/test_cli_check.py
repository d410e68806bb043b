from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

import main

_SNAPSHOT = """\
kind: List
items:
  - kind: ProjectRequestLimit
    metadata:
      name: cluster
    limits:
      - selector:
          tier: gold
        maxProjects: 3
      - selector: {}
        maxProjects: 1
  - kind: User
    metadata:
      name: dave
      labels:
        tier: gold
  - kind: Namespace
    metadata:
      name: dave-1
      annotations:
        openshift.io/requester: dave
"""


def _snapshot(tmp_path: Path) -> str:
    p = tmp_path / "snapshot.yaml"
    p.write_text(_SNAPSHOT, encoding="utf-8")
    return str(p)


def test_check_request_allowed(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main.check_request("dave", _snapshot(tmp_path)) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["username"] == "dave"
    assert out["allowed"] is True


def test_check_request_unknown_user_errors(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main.check_request("erin", _snapshot(tmp_path)) == 1
    out = json.loads(capsys.readouterr().out)
    assert out["allowed"] is False
    assert out["error_kind"] == "InternalError"


def test_main_check_exit_code(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys, "argv", ["main.py", "--check", "system:admin", "--snapshot", _snapshot(tmp_path)])
    with pytest.raises(SystemExit) as exc:
        main.main()
    assert exc.value.code == 0


def test_main_check_requires_snapshot(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys, "argv", ["main.py", "--check", "dave"])
    with pytest.raises(SystemExit) as exc:
        main.main()
    assert exc.value.code == 2
