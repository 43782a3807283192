from __future__ import annotations

import tomllib

import httpx

from promote_release.core import Channel, RemoteServiceError
from promote_release.remote.http import fetch_optional_text


def manifest_name(channel: Channel) -> str:
    return f"channel-rust-{channel.value}.toml"


def previous_version_from(text: str, *, url: str) -> str:
    try:
        data = tomllib.loads(text)
        version = data["pkg"]["rust"]["version"]
    except (tomllib.TOMLDecodeError, KeyError, TypeError) as e:
        raise RemoteServiceError(f"malformed channel manifest at {url}") from e
    if not isinstance(version, str):
        raise RemoteServiceError(f"rust version is not a string in {url}")
    return version


class ChannelManifests:
    """
    Reads the published channel manifests under `base_url`
    (`<upload_addr>/<upload_dir>`).
    """

    def __init__(self, client: httpx.Client, *, base_url: str, channel: Channel) -> None:
        self._client = client
        self.base_url = base_url.rstrip("/")
        self.channel = channel

    def live_url(self) -> str:
        return f"{self.base_url}/{manifest_name(self.channel)}"

    def dated_url(self, date: str) -> str:
        return f"{self.base_url}/{date}/{manifest_name(self.channel)}"

    def previous_version(self) -> str:
        url = self.live_url()
        text = fetch_optional_text(self._client, url)
        if text is None:
            raise RemoteServiceError(f"live channel manifest not found: {url}")
        return previous_version_from(text, url=url)

    def dated_exists(self, date: str) -> bool:
        return fetch_optional_text(self._client, self.dated_url(date)) is not None
