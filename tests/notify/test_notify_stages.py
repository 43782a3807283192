from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pytest
from conftest import (
    FakeGithub,
    LocalBlobStore,
    make_context,
    make_services,
    read_events,
    release_settings,
)
from promote_release.core import Channel, ReleaseError
from promote_release.pipeline import ReleaseFacts
from promote_release.remote import PagesBuild
from promote_release.services import ReleaseState
from promote_release.stages.notify import (
    stage_blog_and_discourse,
    stage_cleanup,
    stage_invalidate,
    stage_tag_release,
)
from promote_release.stages.sign import Signer

STABLE = ReleaseFacts(
    channel=Channel.STABLE,
    revision="fe5b13d681f25ee6474be29d748c65adcd91f69e",
    date="2022-05-19",
    previous_version="1.60.0 (7737e0b5c 2022-04-04)",
    current_version="1.61.0",
    current_cargo_version="0.62.0",
)
NIGHTLY = ReleaseFacts(
    channel=Channel.NIGHTLY,
    revision="abcdef0123456789",
    date="2022-05-19",
    previous_version="1.63.0-nightly (0000000 2022-05-18)",
)


class FakeCloudFront:
    def __init__(self) -> None:
        self.calls: list[tuple[str, list[str]]] = []

    def invalidate(self, distribution_id: str, paths: Sequence[str]) -> None:
        self.calls.append((distribution_id, list(paths)))


class FakeFastly:
    def __init__(self) -> None:
        self.purged: list[str] = []

    def purge(self, path: str) -> None:
        self.purged.append(path)


class FakeDiscourse:
    def __init__(self) -> None:
        self.topics: list[tuple[int, str, str]] = []

    def create_topic(self, category: int, title: str, body: str) -> str:
        self.topics.append((category, title, body))
        return f"https://forum.example.org/t/{len(self.topics)}"


class StaticBackend:
    def __init__(self) -> None:
        self.payloads: list[bytes] = []

    def detached_signature(self, data: bytes) -> str:
        self.payloads.append(data)
        return "-----BEGIN PGP SIGNATURE-----\nsig\n-----END PGP SIGNATURE-----\n"


# invalidate


def test_invalidate_cloudfront_only_by_default(blob: LocalBlobStore, tmp_path: Path) -> None:
    ctx = make_context(tmp_path / "w", release_settings(cloudfront_static_id="ESTATIC"), facts=NIGHTLY)
    cloudfront, fastly = FakeCloudFront(), FakeFastly()

    out = stage_invalidate(ctx, make_services(blob, cloudfront=cloudfront, fastly=fastly))

    assert cloudfront.calls == [("ESTATIC", ["/dist/*"])]
    assert fastly.purged == []
    assert out["_warnings"] == []


def test_invalidate_fastly_when_enabled(blob: LocalBlobStore, tmp_path: Path) -> None:
    ctx = make_context(tmp_path / "w", release_settings(invalidate_fastly=True), facts=NIGHTLY)
    fastly = FakeFastly()

    out = stage_invalidate(ctx, make_services(blob, fastly=fastly))

    assert fastly.purged == ["/dist/*"]
    # CloudFront is unconfigured in tests.
    assert len(out["_warnings"]) == 1
    assert [e["data"]["service"] for e in read_events(ctx, "invalidate")] == ["fastly"]
    assert [e["data"]["service"] for e in read_events(ctx, "notify.skipped")] == ["cloudfront"]


# cleanup


def test_cleanup_removes_download_dir(tmp_path: Path) -> None:
    ctx = make_context(tmp_path / "w", release_settings())
    (ctx.layout.dl_dir() / "a.tar.xz").write_bytes(b"x")

    assert stage_cleanup(ctx) == {"removed": True}
    assert not ctx.layout.dl_dir().exists()


def test_cleanup_can_be_disabled(tmp_path: Path) -> None:
    ctx = make_context(tmp_path / "w", release_settings(skip_delete_build_dir=True))

    out = stage_cleanup(ctx)

    assert out["removed"] is False
    assert ctx.layout.dl_dir().is_dir()


# blog and discourse


def _blog_settings(**overrides: object):
    values: dict[str, object] = {
        "channel": Channel.STABLE,
        "blog_repository": "rust-lang/blog.rust-lang.org",
        "blog_contents": "Rust $version ships on $release_date.",
    }
    values.update(overrides)
    return release_settings(**values)


def test_blog_skipped_off_stable(blob: LocalBlobStore, tmp_path: Path) -> None:
    ctx = make_context(tmp_path / "w", _blog_settings(), facts=NIGHTLY)
    github = FakeGithub()

    out = stage_blog_and_discourse(ctx, make_services(blob, github=github, discourse=FakeDiscourse()))

    assert "not on stable" in out["skipped"]
    assert github.calls == []


def test_blog_skipped_without_discourse(blob: LocalBlobStore, tmp_path: Path) -> None:
    ctx = make_context(tmp_path / "w", _blog_settings(), facts=STABLE)

    out = stage_blog_and_discourse(ctx, make_services(blob, github=FakeGithub()))

    assert "Discourse" in out["skipped"]
    assert len(read_events(ctx, "notify.skipped")) == 1


def test_scheduled_release_posts_internals_then_blog(blob: LocalBlobStore, tmp_path: Path) -> None:
    ctx = make_context(
        tmp_path / "w", _blog_settings(scheduled_release_date="2022-05-19"), facts=STABLE
    )
    github, discourse = FakeGithub(), FakeDiscourse()

    out = stage_blog_and_discourse(ctx, make_services(blob, github=github, discourse=discourse))

    assert discourse.topics == [(18, "Rust 1.61.0 pre-release testing", "Rust 1.61.0 ships on 2022-05-19.\n")]
    assert out["internals_url"] == "https://forum.example.org/t/1"
    [(repo, _, branch, path, content)] = github.mutations("create_file")
    assert repo == "rust-lang/blog.rust-lang.org"
    assert branch == "master"
    assert path == "posts/inside-rust/2022-05-19-1.61.0-prerelease.md"
    assert "https://forum.example.org/t/1" in content


def test_blog_pr_is_merged_then_announced(blob: LocalBlobStore, tmp_path: Path) -> None:
    ctx = make_context(tmp_path / "w", _blog_settings(blog_pr=1234), facts=STABLE)
    github, discourse = FakeGithub(), FakeDiscourse()
    old = PagesBuild(commit="old", created_at="2022-05-19T10:00:00Z")
    github.pages = [old, old, PagesBuild(commit="new", created_at="2022-05-19T10:05:00Z")]
    services = make_services(blob, github=github, discourse=discourse)
    sleeps: list[float] = []
    services.sleep = sleeps.append

    out = stage_blog_and_discourse(ctx, services)

    assert out == {"merged": True, "announcement_url": "https://forum.example.org/t/1"}
    assert github.mutations("merge_pr") == [("rust-lang/blog.rust-lang.org", "merge_pr", 1234)]
    assert sleeps == [33.0]
    assert discourse.topics == [
        (6, "Rust 1.61.0", "https://blog.rust-lang.org/2022/05/19/Rust-1.61.0.html")
    ]


def test_failed_merge_is_a_warning(blob: LocalBlobStore, tmp_path: Path) -> None:
    ctx = make_context(tmp_path / "w", _blog_settings(blog_pr=1234), facts=STABLE)
    github, discourse = FakeGithub(), FakeDiscourse()
    github.merge_error = ReleaseError("not mergeable")

    out = stage_blog_and_discourse(ctx, make_services(blob, github=github, discourse=discourse))

    assert out["merged"] is False
    assert discourse.topics == []


# tagging


def test_tag_release_tags_rustc_and_cargo(blob: LocalBlobStore, tmp_path: Path) -> None:
    ctx = make_context(
        tmp_path / "w",
        release_settings(
            channel=Channel.STABLE,
            rustc_tag_repository="rust-lang/rust",
            cargo_tag_repository="rust-lang/cargo",
        ),
        facts=STABLE,
    )
    github = FakeGithub()
    github.add_submodule("rust-lang/rust", STABLE.revision, "src/tools/cargo", "c4a90")
    backend = StaticBackend()
    state = ReleaseState(signer=Signer(backend))

    out = stage_tag_release(ctx, make_services(blob, github=github), state)

    assert out["tags"] == [
        {"repository": "rust-lang/rust", "tag": "1.61.0"},
        {"repository": "rust-lang/cargo", "tag": "0.62.0"},
    ]
    tags = github.mutations("tag")
    assert [(t[0], t[2].commit, t[2].tag_name) for t in tags] == [
        ("rust-lang/rust", STABLE.revision, "1.61.0"),
        ("rust-lang/cargo", "c4a90", "0.62.0"),
    ]
    assert tags[0][2].message.startswith("1.61.0 release\n-----BEGIN PGP SIGNATURE-----")
    assert backend.payloads[0].startswith(f"object {STABLE.revision}\ntype commit\ntag 1.61.0\n".encode())
    assert github.mutations("workflow_dispatch") == [
        ("rust-lang/thanks", "workflow_dispatch", "ci.yml", "master")
    ]
    assert len(read_events(ctx, "tag.created")) == 2


def test_tag_release_skipped_off_stable(blob: LocalBlobStore, tmp_path: Path) -> None:
    ctx = make_context(tmp_path / "w", release_settings(rustc_tag_repository="rust-lang/rust"), facts=NIGHTLY)
    github = FakeGithub()

    out = stage_tag_release(ctx, make_services(blob, github=github), ReleaseState())

    assert "not on stable" in out["skipped"]
    assert github.calls == []


def test_tag_release_needs_signer(blob: LocalBlobStore, tmp_path: Path) -> None:
    ctx = make_context(
        tmp_path / "w", release_settings(rustc_tag_repository="rust-lang/rust"), facts=STABLE
    )
    with pytest.raises(RuntimeError):
        stage_tag_release(ctx, make_services(blob, github=FakeGithub()), ReleaseState())
