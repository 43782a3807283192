from __future__ import annotations

from pathlib import Path

import structlog

from promote_release.core import Settings
from promote_release.storage import BlobStore, CopyOptions, s3_url

log = structlog.get_logger(__name__)


def docs_invalidation_path(directory: str) -> str:
    return "/*" if directory == "stable" else f"/{directory}/*"


def publish_archive(blob: BlobStore, settings: Settings, *, dl_dir: Path, date: str) -> str:
    """
    Dated copy (`<upload_dir>/<date>/`), kept forever.
    """
    dst = s3_url(settings.upload_bucket, f"{settings.upload_dir}/{date}")
    blob.copy_recursive(
        f"{dl_dir}/",
        dst,
        CopyOptions(
            storage_class=settings.upload_storage_class,
            cache_control="public",
            metadata_directive="REPLACE",
        ),
    )
    return dst


def publish_release(blob: BlobStore, settings: Settings, *, dl_dir: Path) -> str:
    """
    Channel copy (`<upload_dir>/`): what installers see from now on.
    """
    dst = s3_url(settings.upload_bucket, settings.upload_dir)
    blob.copy_recursive(
        f"{dl_dir}/",
        dst,
        CopyOptions(storage_class=settings.upload_storage_class),
    )
    return dst


def sync_docs(blob: BlobStore, settings: Settings, *, docs_dir: Path, directory: str) -> str:
    dst = s3_url(settings.upload_bucket, f"doc/{directory}")
    blob.sync(
        f"{docs_dir}/",
        dst,
        delete=True,
        options=CopyOptions(storage_class=settings.upload_storage_class),
    )
    return dst
