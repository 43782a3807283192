from __future__ import annotations

from typing import Protocol

import httpx
import structlog

from .http import make_http_client, request_json

log = structlog.get_logger(__name__)


class ForumPoster(Protocol):
    def create_topic(self, category: int, title: str, body: str) -> str: ...


class Discourse:
    """
    Minimal Discourse API client: topic creation only.
    """

    def __init__(
        self,
        *,
        root: str,
        api_username: str,
        api_key: str,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.root = root.rstrip("/")
        self._client = make_http_client(
            headers={"Api-Key": api_key, "Api-Username": api_username},
            transport=transport,
        )

    def create_topic(self, category: int, title: str, body: str) -> str:
        """
        Create a regular topic under `category` and return its public URL.
        """
        data = request_json(
            self._client,
            "POST",
            f"{self.root}/posts.json",
            json={
                "title": title,
                "raw": body,
                "category": category,
                "archetype": "regular",
            },
        )
        url = f"{self.root}/t/{data['topic_slug']}/{data['topic_id']}"
        log.info("created forum topic", url=url, category=category)
        return url

    def close(self) -> None:
        self._client.close()
