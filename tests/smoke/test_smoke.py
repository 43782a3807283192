from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx
import pytest
from promote_release.core import ExternalCommandError, SmokeTestError
from promote_release.stages.smoke import LocalDistServer, SmokeTester
from promote_release.stages.smoke.server import resolve_request


def _dirs(tmp_path: Path) -> tuple[Path, Path]:
    smoke = tmp_path / "manifests-smoke"
    dl = tmp_path / "dl"
    smoke.mkdir()
    dl.mkdir()
    (smoke / "channel-rust-nightly.toml").write_text("smoke")
    (dl / "channel-rust-nightly.toml").write_text("real")
    (dl / "rustc-nightly-x86_64-unknown-linux-gnu.tar.xz").write_bytes(b"rustc")
    return smoke, dl


def test_resolve_request_first_directory_wins(tmp_path: Path) -> None:
    smoke, dl = _dirs(tmp_path)
    dirs = [smoke, dl]

    assert resolve_request("/dist/channel-rust-nightly.toml", dirs) == smoke / "channel-rust-nightly.toml"
    assert (
        resolve_request("/dist/2022-05-19/rustc-nightly-x86_64-unknown-linux-gnu.tar.xz?x=1", dirs)
        == dl / "rustc-nightly-x86_64-unknown-linux-gnu.tar.xz"
    )
    assert resolve_request("/dist/missing.tar.xz", dirs) is None
    assert resolve_request("/dist/", dirs) is None
    assert resolve_request("/dist/..", dirs) is None


def test_server_serves_by_file_name(tmp_path: Path) -> None:
    smoke, dl = _dirs(tmp_path)

    with LocalDistServer([smoke, dl]) as server:
        base = f"http://{server.addr}"
        assert server.addr.startswith("127.0.0.1:")

        r = httpx.get(f"{base}/dist/channel-rust-nightly.toml", trust_env=False)
        assert r.status_code == 200
        assert r.text == "smoke"

        r = httpx.get(f"{base}/anything/rustc-nightly-x86_64-unknown-linux-gnu.tar.xz", trust_env=False)
        assert r.content == b"rustc"

        r = httpx.get(f"{base}/dist/nope", trust_env=False)
        assert r.status_code == 404
        assert r.text == "404: Not Found\n"

    server.close()


def test_server_streams_large_artifacts(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    smoke, dl = _dirs(tmp_path)
    payload = bytes(range(256)) * (12 * 1024)
    (dl / "rust-std-nightly-x86_64-unknown-linux-gnu.tar.xz").write_bytes(payload)

    def no_read_bytes(self: Path) -> bytes:
        raise AssertionError(f"{self} was read into memory")

    monkeypatch.setattr(Path, "read_bytes", no_read_bytes)

    with LocalDistServer([smoke, dl]) as server:
        r = httpx.get(
            f"http://{server.addr}/dist/rust-std-nightly-x86_64-unknown-linux-gnu.tar.xz",
            trust_env=False,
        )

    assert r.status_code == 200
    assert r.headers["Content-Length"] == str(len(payload))
    assert r.content == payload


class RecordingRunner:
    def __init__(self, fail_on: str | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self.fail_on = fail_on

    def __call__(self, argv: Any, **kw: Any) -> str:
        args = [str(a) for a in argv]
        self.calls.append({"argv": args, **kw})
        if self.fail_on is not None and self.fail_on in args:
            raise ExternalCommandError(argv=args, status=101)
        return ""


def test_smoke_tester_drives_rustup_and_cargo(tmp_path: Path) -> None:
    smoke, dl = _dirs(tmp_path)
    runner = RecordingRunner()
    tester = SmokeTester([smoke, dl], runner=runner)
    addr = tester.server_addr
    assert tester.dist_url() == f"http://{addr}/dist"

    tester.test("nightly")

    argvs = [c["argv"] for c in runner.calls]
    assert argvs == [
        ["rustup", "toolchain", "remove", "nightly"],
        ["rustup", "toolchain", "install", "nightly", "--profile", "minimal"],
        ["cargo", "+nightly", "init", "--bin", "."],
        ["cargo", "+nightly", "run"],
    ]
    assert runner.calls[0]["env"] == {"RUSTUP_DIST_SERVER": f"http://{addr}"}
    assert runner.calls[2]["env"] == {"USER": "root"}
    assert runner.calls[2]["cwd"].name == "sample-crate"

    # the server is gone once the test finished
    with pytest.raises(httpx.TransportError):
        httpx.get(f"http://{addr}/dist/channel-rust-nightly.toml", timeout=2.0, trust_env=False)


def test_smoke_tester_failure(tmp_path: Path) -> None:
    smoke, dl = _dirs(tmp_path)
    runner = RecordingRunner(fail_on="run")
    tester = SmokeTester([smoke, dl], runner=runner)

    with pytest.raises(SmokeTestError):
        tester.test("beta")
    tester.close()
