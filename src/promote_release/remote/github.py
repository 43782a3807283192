from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from promote_release.core import RemoteServiceError, unix_timestamp

from .http import make_http_client, request, request_json

log = structlog.get_logger(__name__)

GITHUB_API = "https://api.github.com"


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


@dataclass(frozen=True, slots=True)
class GitFile:
    """
    Contents of a path at a ref: either a regular file or a submodule pointer.
    """

    path: str
    content: str | None = None
    submodule_sha: str | None = None

    @property
    def is_submodule(self) -> bool:
        return self.submodule_sha is not None

    def text(self) -> str:
        if self.content is None:
            raise RemoteServiceError(f"{self.path} is a submodule, not a file")
        return self.content

    def require_submodule(self) -> str:
        if self.submodule_sha is None:
            raise RemoteServiceError(f"{self.path} is expected to be a submodule")
        return self.submodule_sha


@dataclass(frozen=True, slots=True)
class CommitInfo:
    sha: str
    parents: list[str]


@dataclass(frozen=True, slots=True)
class PagesBuild:
    commit: str
    created_at: str


@dataclass(frozen=True, slots=True)
class CreateTag:
    commit: str
    tag_name: str
    message: str
    tagger_name: str
    tagger_email: str


class ReleaseControl(Protocol):
    """
    Repository-scoped operations the release process needs.
    """

    def read_file(self, ref: str | None, path: str) -> GitFile: ...
    def get_ref(self, name: str) -> str: ...
    def create_ref(self, name: str, sha: str) -> None: ...
    def update_ref(self, name: str, sha: str, *, force: bool) -> None: ...
    def tag(self, tag: CreateTag) -> None: ...
    def workflow_dispatch(self, workflow: str, branch: str) -> None: ...
    def create_file(self, branch: str, path: str, content: str) -> None: ...
    def merge_pr(self, number: int) -> None: ...
    def latest_github_pages(self) -> PagesBuild | None: ...
    def last_commit_for_file(self, path: str, *, author: str = "bors") -> CommitInfo: ...


class GithubApp(Protocol):
    def token(self, repository: str) -> ReleaseControl: ...


class Github:
    """
    GitHub App client. `token(repo)` exchanges the app JWT for an
    installation token scoped to that repository.
    """

    def __init__(
        self,
        *,
        key_pem: str,
        app_id: int,
        api_url: str = GITHUB_API,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        from cryptography.hazmat.primitives.serialization import load_pem_private_key

        try:
            self._key = load_pem_private_key(key_pem.encode("utf-8"), password=None)
        except (ValueError, TypeError) as e:
            raise RemoteServiceError("failed to load the GitHub App private key") from e
        self.app_id = app_id
        self.api_url = api_url.rstrip("/")
        self._transport = transport
        self._client = make_http_client(
            base_url=self.api_url,
            headers={"Accept": "application/vnd.github+json"},
            transport=transport,
        )

    def jwt(self) -> str:
        from cryptography.hazmat.primitives import hashes
        from cryptography.hazmat.primitives.asymmetric import padding

        now = unix_timestamp()
        header = _b64url(b'{"alg":"RS256","typ":"JWT"}')
        payload = _b64url(
            json.dumps(
                {"iat": now - 10, "exp": now + 60, "iss": self.app_id},
                separators=(",", ":"),
            ).encode("utf-8")
        )
        signing_input = f"{header}.{payload}".encode("ascii")
        signature = self._key.sign(signing_input, padding.PKCS1v15(), hashes.SHA256())  # type: ignore[union-attr, call-arg]
        return f"{header}.{payload}.{_b64url(signature)}"

    def token(self, repository: str) -> "RepositoryClient":
        auth = {"Authorization": f"Bearer {self.jwt()}"}
        installation = request_json(
            self._client, "GET", f"/repos/{repository}/installation", headers=auth
        )
        installation_id = installation["id"]

        auth = {"Authorization": f"Bearer {self.jwt()}"}
        token = request_json(
            self._client,
            "POST",
            f"/app/installations/{installation_id}/access_tokens",
            headers=auth,
        )["token"]
        return RepositoryClient(
            repository=repository,
            token=token,
            client=make_http_client(
                base_url=self.api_url,
                headers={
                    "Accept": "application/vnd.github+json",
                    "Authorization": f"token {token}",
                },
                transport=self._transport,
            ),
        )

    def close(self) -> None:
        self._client.close()


class RepositoryClient:
    def __init__(self, *, repository: str, token: str, client: httpx.Client) -> None:
        self.repository = repository
        self._token = token
        self._client = client

    def _repo(self, path: str) -> str:
        return f"/repos/{self.repository}/{path.lstrip('/')}"

    def read_file(self, ref: str | None, path: str) -> GitFile:
        params = {"ref": ref} if ref else None
        data = request_json(self._client, "GET", self._repo(f"contents/{path}"), params=params)
        kind = data.get("type")
        if kind == "submodule":
            return GitFile(path=path, submodule_sha=str(data["sha"]))
        if kind == "file":
            raw = base64.b64decode(data.get("content") or "")
            return GitFile(path=path, content=raw.decode("utf-8"))
        raise RemoteServiceError(f"unexpected content type {kind!r} for {path}")

    def get_ref(self, name: str) -> str:
        data = request_json(self._client, "GET", self._repo(f"git/ref/{name}"))
        return str(data["object"]["sha"])

    def create_ref(self, name: str, sha: str) -> None:
        log.info("creating ref", repository=self.repository, ref=name, sha=sha)
        request(
            self._client,
            "POST",
            self._repo("git/refs"),
            json={"ref": name, "sha": sha},
            allowed_statuses=(201,),
        )

    def update_ref(self, name: str, sha: str, *, force: bool) -> None:
        log.info("updating ref", repository=self.repository, ref=name, sha=sha, force=force)
        request(
            self._client,
            "PATCH",
            self._repo(f"git/refs/{name}"),
            json={"sha": sha, "force": force},
        )

    def tag(self, tag: CreateTag) -> None:
        created = request_json(
            self._client,
            "POST",
            self._repo("git/tags"),
            json={
                "tag": tag.tag_name,
                "message": tag.message,
                "object": tag.commit,
                "type": "commit",
                "tagger": {"name": tag.tagger_name, "email": tag.tagger_email},
            },
            allowed_statuses=(201,),
        )
        self.create_ref(f"refs/tags/{tag.tag_name}", str(created["sha"]))

    def workflow_dispatch(self, workflow: str, branch: str) -> None:
        request(
            self._client,
            "POST",
            self._repo(f"actions/workflows/{workflow}/dispatches"),
            json={"ref": branch},
            allowed_statuses=(204,),
        )

    def create_file(self, branch: str, path: str, content: str) -> None:
        # No `sha` in the body: GitHub refuses with 422 when the file exists.
        request(
            self._client,
            "PUT",
            self._repo(f"contents/{path}"),
            json={
                "message": f"Creating {path}",
                "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
                "branch": branch,
            },
            allowed_statuses=(201,),
        )

    def merge_pr(self, number: int) -> None:
        request(self._client, "PUT", self._repo(f"pulls/{number}/merge"), json={})

    def latest_github_pages(self) -> PagesBuild | None:
        resp = request(
            self._client,
            "GET",
            self._repo("pages/builds/latest"),
            allowed_statuses=(200, 404),
        )
        if resp.status_code == 404:
            return None
        data: dict[str, Any] = resp.json()
        if data.get("status") != "built":
            return None
        return PagesBuild(commit=str(data.get("commit")), created_at=str(data.get("created_at")))

    def last_commit_for_file(self, path: str, *, author: str = "bors") -> CommitInfo:
        page = 1
        while True:
            commits = request_json(
                self._client,
                "GET",
                self._repo("commits"),
                params={"path": path, "per_page": 100, "page": page},
            )
            if not commits:
                break
            for c in commits:
                login = (c.get("author") or {}).get("login")
                if login == author:
                    return CommitInfo(
                        sha=str(c["sha"]),
                        parents=[str(p["sha"]) for p in c.get("parents") or []],
                    )
            page += 1
        raise RemoteServiceError(
            f"no commit by {author} touching {path} in {self.repository}"
        )

    def close(self) -> None:
        self._client.close()
