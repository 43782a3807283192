from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from string import Template

BLOG_PRIMARY_BRANCH = "master"

INTERNALS_CATEGORY = 18
ANNOUNCEMENTS_CATEGORY = 6


@dataclass(frozen=True, slots=True)
class PrereleaseSchedule:
    release_date: date
    release_time: str | None = None


def render_prerelease_post(
    template: str | None,
    *,
    version: str,
    today: str,
    schedule: PrereleaseSchedule | None,
    for_blog: bool,
    internals_url: str | None = None,
) -> str | None:
    """
    Text of the pre-release testing announcement, or None when there is not
    enough information to write one.

    `template` uses `$version`, `$release_date`, `$release_time` and
    `$internals_url` placeholders. The blog flavour gets front matter and a
    link to the internals thread.
    """
    if not template or schedule is None:
        return None

    body = Template(template).safe_substitute(
        version=version,
        release_date=schedule.release_date.isoformat(),
        release_time=schedule.release_time or "",
        internals_url=internals_url or "",
    ).strip()

    if not for_blog:
        return body + "\n"

    front_matter = "\n".join(
        [
            "+++",
            'layout = "post"',
            f"date = {today}",
            f'title = "{version} pre-release testing"',
            'author = "Release automation"',
            'team = "The Release Team <https://www.rust-lang.org/governance/teams/release>"',
            "+++",
        ]
    )
    text = f"{front_matter}\n\n{body}\n"
    if internals_url:
        text += f"\nYou can leave feedback on the [internals thread]({internals_url}).\n"
    return text


def prerelease_post_path(today: str, version: str) -> str:
    return f"posts/inside-rust/{today}-{version}-prerelease.md"


def release_blog_url(today: str, version: str) -> str:
    """`2024-03-21`, `1.77.0` -> https://blog.rust-lang.org/2024/03/21/Rust-1.77.0.html"""
    return f"https://blog.rust-lang.org/{today.replace('-', '/')}/Rust-{version}.html"
