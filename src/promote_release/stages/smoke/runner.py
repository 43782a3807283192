from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Sequence

import structlog

from promote_release.core import CommandRunner, ExternalCommandError, SmokeTestError, run_command

from .server import LocalDistServer

log = structlog.get_logger(__name__)


class SmokeTester:
    """
    Installs the freshly built toolchain from a local stand-in for the
    distribution server, then builds and runs a throwaway binary crate.

    The server starts on construction so its address can be baked into the
    smoke-test manifests before `test` runs.
    """

    def __init__(
        self,
        directories: Sequence[Path],
        *,
        runner: CommandRunner = run_command,
    ) -> None:
        self._run = runner
        self.server = LocalDistServer(directories)

    @property
    def server_addr(self) -> str:
        return self.server.addr

    def dist_url(self) -> str:
        return f"http://{self.server_addr}/dist"

    def test(self, channel: str) -> None:
        rustup_env = {"RUSTUP_DIST_SERVER": f"http://{self.server_addr}"}
        try:
            with tempfile.TemporaryDirectory(prefix="smoke-test-") as tmp:
                crate = Path(tmp) / "sample-crate"
                crate.mkdir(parents=True)

                def rustup(*args: str) -> None:
                    self._run(["rustup", *args], env=rustup_env)

                def cargo(*args: str) -> None:
                    self._run(
                        ["cargo", f"+{channel}", *args],
                        cwd=crate,
                        env={"USER": "root"},
                    )

                rustup("toolchain", "remove", channel)
                rustup("toolchain", "install", channel, "--profile", "minimal")
                cargo("init", "--bin", ".")
                cargo("run")
        except ExternalCommandError as e:
            raise SmokeTestError(f"smoke test failed: {e}") from e
        finally:
            self.close()
        log.info("smoke test passed", channel=channel)

    def close(self) -> None:
        self.server.close()
