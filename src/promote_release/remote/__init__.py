from .cloudfront import CloudFront, DistributionInvalidator
from .discourse import Discourse, ForumPoster
from .fastly import CachePurger, Fastly, surrogate_key
from .github import (
    CommitInfo,
    CreateTag,
    GitFile,
    Github,
    GithubApp,
    PagesBuild,
    ReleaseControl,
    RepositoryClient,
)
from .http import fetch_optional_text, make_http_client, request, request_json

__all__ = [
    "CloudFront",
    "DistributionInvalidator",
    "Discourse",
    "ForumPoster",
    "CachePurger",
    "Fastly",
    "surrogate_key",
    "CommitInfo",
    "CreateTag",
    "GitFile",
    "Github",
    "GithubApp",
    "PagesBuild",
    "ReleaseControl",
    "RepositoryClient",
    "fetch_optional_text",
    "make_http_client",
    "request",
    "request_json",
]
