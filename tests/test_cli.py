from __future__ import annotations

import os
from pathlib import Path

import pytest
from promote_release.cli import main


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for k in list(os.environ):
        if k.startswith("PROMOTE_RELEASE_"):
            monkeypatch.delenv(k)
    return monkeypatch


def test_config_error_exits_1(clean_env: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    clean_env.setenv("PROMOTE_RELEASE_CHANNEL", "nightly")

    assert main([str(tmp_path / "work")]) == 1
    assert "PROMOTE_RELEASE_DOWNLOAD_BUCKET" in capsys.readouterr().err


def test_promote_branches_without_github_is_a_noop(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    clean_env.setenv("PROMOTE_RELEASE_CHANNEL", "nightly")
    clean_env.setenv("PROMOTE_RELEASE_ACTION", "promote-branches")
    clean_env.setenv("PROMOTE_RELEASE_LOG_FORMAT", "json")

    assert main([str(tmp_path / "work")]) == 0
    events = list((tmp_path / "work" / "_runs").glob("*/events.jsonl"))
    assert len(events) == 1
    assert '"notify.skipped"' in events[0].read_text()
