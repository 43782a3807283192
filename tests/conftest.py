from __future__ import annotations

import json
import os
import shutil
import sys
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest
from promote_release.core import Channel, Settings, Unconfigured, WorkLayout, get_logger
from promote_release.pipeline import EventSink, ReleaseFacts, RunContext
from promote_release.remote import make_http_client
from promote_release.remote.github import CommitInfo, CreateTag, GitFile, PagesBuild
from promote_release.services import ReleaseServices

FAKE_TOOL = """#!{python}
import hashlib
import json
import os
import sys
from pathlib import Path

inp, out, date, url, channel = sys.argv[1:6]
inp, out = Path(inp), Path(out)
if os.environ.get("FAKE_TOOL_FAIL"):
    sys.exit(3)

files = sorted(p for p in inp.iterdir() if p.is_file() and p.name.endswith(".tar.xz"))
(out / f"channel-rust-{{channel}}.toml").write_text(
    f"date = '{{date}}'\\nurl = '{{url}}'\\n" + "".join(f"# {{p.name}}\\n" for p in files)
)

shipped = os.environ.get("BUILD_MANIFEST_SHIPPED_FILES_PATH")
if shipped and not os.environ.get("FAKE_TOOL_OLD"):
    shipped_names = sorted(
        p.name for p in inp.iterdir()
        if p.name.endswith((".tar.xz", ".tar.gz")) and "unshipped" not in p.name
    )
    Path(shipped).write_text("".join(n + "\\n" for n in shipped_names))

cache_path = Path(os.environ["BUILD_MANIFEST_CHECKSUM_CACHE"])
cache = json.loads(cache_path.read_text()) if cache_path.exists() else {{}}
log = Path(os.environ["FAKE_TOOL_LOG"])
for p in files:
    key = str(p.resolve())
    if key not in cache:
        cache[key] = hashlib.sha256(p.read_bytes()).hexdigest()
        with log.open("a") as f:
            f.write(p.name + "\\n")
cache_path.write_text(json.dumps(cache))
"""


@pytest.fixture
def fake_tool(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    tool = tmp_path / "bin" / "build-manifest"
    tool.parent.mkdir()
    tool.write_text(FAKE_TOOL.format(python=sys.executable))
    os.chmod(tool, 0o755)
    monkeypatch.setenv("FAKE_TOOL_LOG", str(tmp_path / "hashed.log"))
    return tool


@pytest.fixture
def hashed(tmp_path: Path) -> Callable[[], list[str]]:
    """
    Names of the files the fake tool had to hash, one entry per hash.
    """
    log = tmp_path / "hashed.log"

    def read() -> list[str]:
        return log.read_text().splitlines() if log.exists() else []

    return read


class LocalBlobStore:
    """
    BlobStore over a local directory: `s3://bucket/key` lives at
    `<root>/bucket/key`. Every call is recorded.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.calls: list[tuple[Any, ...]] = []

    def local(self, location: Any) -> Path:
        s = str(location)
        if s.startswith("s3://"):
            return self.root / s[len("s3://") :].rstrip("/")
        return Path(s.rstrip("/"))

    def list(self, prefix: str) -> list[str]:
        self.calls.append(("list", prefix))
        base = self.local(prefix)
        if not base.is_dir():
            return []
        return sorted(p.relative_to(self.root).as_posix() for p in base.rglob("*") if p.is_file())

    def copy_recursive(self, src: Any, dst: Any, options: Any = None) -> None:
        self.calls.append(("copy", str(src), str(dst), options))
        shutil.copytree(self.local(src), self.local(dst), dirs_exist_ok=True)

    def sync(self, src: Any, dst: Any, *, delete: bool = False, options: Any = None) -> None:
        self.calls.append(("sync", str(src), str(dst), delete, options))
        target = self.local(dst)
        if delete:
            shutil.rmtree(target, ignore_errors=True)
        shutil.copytree(self.local(src), target, dirs_exist_ok=True)

    def put_file(self, src: Path, dst: str, options: Any = None) -> None:
        self.calls.append(("put", str(src), dst, options))
        target = self.local(dst)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, target)


@pytest.fixture
def blob(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "s3")


def release_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "channel": Channel.NIGHTLY,
        "download_bucket": "rust-lang-ci2",
        "download_dir": "rustc-builds",
        "upload_addr": "https://static.example.org",
        "upload_bucket": "static-rust-lang-org",
        "upload_dir": "dist",
        "gpg_key_file": Path("/secrets/key.asc"),
        "gpg_password_file": Path("/secrets/password"),
        "num_threads": 2,
    }
    values.update(overrides)
    return Settings(**values)


def make_context(
    root: Path,
    settings: Settings,
    *,
    facts: ReleaseFacts | None = None,
    date: str = "2022-05-19",
) -> RunContext:
    layout = WorkLayout(root=root)
    layout.ensure_dirs()
    return RunContext(
        run_id="test-run",
        layout=layout,
        settings=settings,
        date=date,
        logger=get_logger("tests"),
        events=EventSink(layout.runs_root() / "test-run" / "events.jsonl"),
        facts=facts,
    )


def read_events(ctx: RunContext, event_type: str | None = None) -> list[dict[str, Any]]:
    events = [json.loads(line) for line in ctx.events.path.read_text().splitlines()]
    if event_type is None:
        return events
    return [e for e in events if e["type"] == event_type]


class RecordingRunner:
    """
    CommandRunner fake: records argv and keyword arguments, answers
    captured commands from `outputs` keyed by the first two argv entries.
    """

    def __init__(self, outputs: dict[tuple[str, str], str] | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self.outputs = outputs or {}

    def __call__(self, argv: Any, **kw: Any) -> str:
        args = [str(a) for a in argv]
        self.calls.append({"argv": args, **kw})
        if kw.get("capture"):
            return self.outputs.get((args[0], args[1]), "")
        return ""

    def argvs(self) -> list[list[str]]:
        return [c["argv"] for c in self.calls]


def make_services(
    blob: Any,
    *,
    runner: Any = None,
    http_handler: Callable[[httpx.Request], httpx.Response] | None = None,
    signing_backend: Any = None,
    github: Any = None,
    discourse: Any = None,
    fastly: Any = None,
    cloudfront: Any = None,
) -> ReleaseServices:
    def no_backend() -> Any:
        if signing_backend is None:
            raise AssertionError("signing backend requested")
        return signing_backend

    handler = http_handler or (lambda req: httpx.Response(404))
    return ReleaseServices(
        runner=runner or RecordingRunner(),
        blob=blob,
        http=make_http_client(transport=httpx.MockTransport(handler)),
        signing_backend=no_backend,
        github=github or Unconfigured("GitHub", ["github_app_key", "github_app_id"]),
        discourse=discourse or Unconfigured("Discourse", ["discourse_url"]),
        fastly=fastly or Unconfigured("Fastly", ["fastly_api_token"]),
        cloudfront=cloudfront or Unconfigured("CloudFront", reason="disabled in tests"),
        sleep=lambda seconds: None,
    )


class FakeRepo:
    """
    In-memory repository: `files[(ref, path)]` is a GitFile, `refs[name]`
    a sha. Every mutating call is appended to `calls`.
    """

    def __init__(self, owner: "FakeGithub", name: str) -> None:
        self.owner = owner
        self.name = name

    def _record(self, *call: Any) -> None:
        self.owner.calls.append((self.name, *call))

    def read_file(self, ref: str | None, path: str) -> GitFile:
        return self.owner.files[(self.name, ref, path)]

    def get_ref(self, name: str) -> str:
        return self.owner.refs[(self.name, name)]

    def create_ref(self, name: str, sha: str) -> None:
        self._record("create_ref", name, sha)

    def update_ref(self, name: str, sha: str, *, force: bool) -> None:
        self._record("update_ref", name, sha, force)

    def tag(self, tag: CreateTag) -> None:
        self._record("tag", tag)

    def workflow_dispatch(self, workflow: str, branch: str) -> None:
        self._record("workflow_dispatch", workflow, branch)

    def create_file(self, branch: str, path: str, content: str) -> None:
        self._record("create_file", branch, path, content)

    def merge_pr(self, number: int) -> None:
        if self.owner.merge_error is not None:
            raise self.owner.merge_error
        self._record("merge_pr", number)

    def latest_github_pages(self) -> PagesBuild | None:
        builds = self.owner.pages
        return builds.pop(0) if len(builds) > 1 else builds[0]

    def last_commit_for_file(self, path: str, *, author: str = "bors") -> CommitInfo:
        return self.owner.commits[(self.name, path)]


class FakeGithub:
    def __init__(self) -> None:
        self.files: dict[tuple[str, str | None, str], GitFile] = {}
        self.refs: dict[tuple[str, str], str] = {}
        self.commits: dict[tuple[str, str], CommitInfo] = {}
        self.pages: list[PagesBuild | None] = [None]
        self.merge_error: Exception | None = None
        self.calls: list[tuple[Any, ...]] = []

    def token(self, repository: str) -> FakeRepo:
        return FakeRepo(self, repository)

    def add_file(self, repository: str, ref: str | None, path: str, content: str) -> None:
        self.files[(repository, ref, path)] = GitFile(path=path, content=content)

    def add_submodule(self, repository: str, ref: str | None, path: str, sha: str) -> None:
        self.files[(repository, ref, path)] = GitFile(path=path, submodule_sha=sha)

    def mutations(self, kind: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[1] == kind]
