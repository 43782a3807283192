from .runner import (
    REQUIRED_NIGHTLY_COMPONENTS,
    artifacts_url,
    assert_components_present,
    download_artifacts,
    prune_unshipped,
    remove_sidecars,
)

__all__ = [
    "REQUIRED_NIGHTLY_COMPONENTS",
    "artifacts_url",
    "assert_components_present",
    "download_artifacts",
    "prune_unshipped",
    "remove_sidecars",
]
