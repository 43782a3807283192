from .branching import stage_promote_branches
from .rustup import release_manifest, rustup_version, stage_promote_rustup

__all__ = [
    "stage_promote_branches",
    "release_manifest",
    "rustup_version",
    "stage_promote_rustup",
]
