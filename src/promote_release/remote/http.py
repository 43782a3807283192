from __future__ import annotations

from typing import Any, Iterable, Mapping

import httpx
import structlog

from promote_release.core.errors import HttpStatusError, RemoteServiceError

log = structlog.get_logger(__name__)

USER_AGENT = "rust-lang/promote-release"


def make_http_client(
    *,
    base_url: str = "",
    headers: Mapping[str, str] | None = None,
    timeout: httpx.Timeout | None = None,
    follow_redirects: bool = True,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    t = timeout or httpx.Timeout(connect=10.0, read=60.0, write=60.0, pool=10.0)
    h = {"User-Agent": USER_AGENT}
    if headers:
        h.update(headers)
    return httpx.Client(
        base_url=base_url,
        timeout=t,
        follow_redirects=follow_redirects,
        headers=h,
        transport=transport,
    )


def _body_snippet(resp: httpx.Response, *, limit: int = 200) -> str | None:
    try:
        s = (resp.text or "")[:limit].strip()
        return s or None
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        return None


def _failed_url(exc: httpx.HTTPError, fallback: str) -> str:
    try:
        return str(exc.request.url)
    except RuntimeError:
        return fallback


def request(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    json: Any = None,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    allowed_statuses: Iterable[int] = (200, 201),
) -> httpx.Response:
    """
    Single attempt; any status outside `allowed_statuses` is fatal, as is a
    transport failure.
    """
    try:
        resp = client.request(method, url, json=json, params=params, headers=headers)
    except httpx.HTTPError as e:
        raise RemoteServiceError(
            f"{method} {_failed_url(e, url)} failed: {type(e).__name__}: {e}"
        ) from e
    if resp.status_code not in set(allowed_statuses):
        raise HttpStatusError(
            method=method,
            url=str(resp.request.url),
            status_code=resp.status_code,
            body_snippet=_body_snippet(resp),
        )
    return resp


def request_json(
    client: httpx.Client,
    method: str,
    url: str,
    **kw: Any,
) -> Any:
    resp = request(client, method, url, **kw)
    try:
        return resp.json()
    except ValueError as e:
        raise HttpStatusError(
            method=method,
            url=str(resp.request.url),
            status_code=resp.status_code,
            body_snippet=f"invalid JSON: {_body_snippet(resp)}",
        ) from e


def fetch_optional_text(client: httpx.Client, url: str) -> str | None:
    """
    GET `url`: body on 200, None on 404, error on anything else.
    """
    log.info("downloading", url=url)
    resp = request(client, "GET", url, allowed_statuses=(200, 404))
    if resp.status_code == 404:
        return None
    return resp.text
