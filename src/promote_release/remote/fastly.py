from __future__ import annotations

from typing import Protocol

import httpx
import structlog

from .http import make_http_client, request

log = structlog.get_logger(__name__)

FASTLY_API = "https://api.fastly.com"


class CachePurger(Protocol):
    def purge(self, path: str) -> None: ...


def surrogate_key(path: str) -> str:
    """
    Purge key for a path glob: `/dist/*` -> `dist`, `/` -> `root`.

    Objects are tagged with the key of their top-level directory when they
    are uploaded, so purging the key covers the whole glob.
    """
    parts = [p for p in path.strip("/").split("/") if p and p != "*"]
    if not parts:
        return "root"
    return "/".join(parts).replace("*", "")


class Fastly:
    def __init__(
        self,
        *,
        api_token: str,
        service_id: str,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.service_id = service_id
        self._client = make_http_client(
            base_url=FASTLY_API,
            headers={"Fastly-Key": api_token, "Accept": "application/json"},
            transport=transport,
        )

    def purge(self, path: str) -> None:
        key = surrogate_key(path)
        log.info("purging fastly cache", path=path, surrogate_key=key)
        request(self._client, "POST", f"/service/{self.service_id}/purge/{key}")

    def close(self) -> None:
        self._client.close()
