from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class WorkLayout:
    """
    Canonical layout of the working directory:

      {root}/.lock
      {root}/dl/                 downloaded artifacts, later the publish set
      {root}/manifests/          manifests for the public endpoint
      {root}/manifests-smoke/    manifests for the local smoke server (discarded)
      {root}/docs/               unpacked documentation
      {root}/payload.json        CloudFront invalidation batch
      {root}/_runs/{run_id}/     events.jsonl + run_report.json
    """

    root: Path

    def lock_file(self) -> Path:
        return self.root / ".lock"

    def dl_dir(self) -> Path:
        return self.root / "dl"

    def real_manifest_dir(self) -> Path:
        return self.root / "manifests"

    def smoke_manifest_dir(self) -> Path:
        return self.root / "manifests-smoke"

    def docs_dir(self) -> Path:
        return self.root / "docs"

    def invalidation_payload(self) -> Path:
        return self.root / "payload.json"

    def runs_root(self) -> Path:
        return self.root / "_runs"

    def ensure_dirs(self) -> None:
        for p in (
            self.root,
            self.dl_dir(),
            self.real_manifest_dir(),
            self.smoke_manifest_dir(),
        ):
            p.mkdir(parents=True, exist_ok=True)
