"""Filesystem object store for mirrored icons.

Layout (gitignored):
  data/storage/<bucket>/<owner>/<record id>.<ext>

Objects are published read-only by the app under `/storage/`, so
`public_url()` is just the configured public base joined with bucket and key.
Uploads overwrite in place with an atomic rename.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from urllib.parse import quote

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9._@+-]+$")


class BlobstoreError(Exception):
    pass


def _check_segments(value: str, what: str) -> list[str]:
    parts = (value or "").strip().split("/")
    if not parts or any(not p or p in {".", ".."} or not _SEGMENT_RE.match(p) for p in parts):
        raise BlobstoreError(f"invalid {what}: {value!r}")
    return parts


class LocalObjectStore:
    def __init__(self, root_dir: str | Path = "data/storage", public_base_url: str = "/storage"):
        self.root_dir = Path(root_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def path_for(self, bucket: str, key: str) -> Path:
        bucket_parts = _check_segments(bucket, "bucket")
        if len(bucket_parts) != 1:
            raise BlobstoreError(f"invalid bucket: {bucket!r}")
        return self.root_dir.joinpath(bucket_parts[0], *_check_segments(key, "key"))

    async def upload(self, bucket: str, key: str, data: bytes, content_type: str = "") -> None:
        """Write bytes at `bucket/key`, replacing any previous object."""
        dest = self.path_for(bucket, key)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BlobstoreError(f"cannot create {dest.parent}: {exc}") from exc

        fd = None
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=f"{dest.name}.tmp.", dir=str(dest.parent))
            with os.fdopen(fd, "wb") as f:
                fd = None
                f.write(data or b"")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, dest)
            tmp_path = None
        except OSError as exc:
            raise BlobstoreError(f"upload to {bucket}/{key} failed: {exc}") from exc
        finally:
            if fd is not None:
                try:
                    os.close(fd)
                except OSError:
                    pass
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass

    def public_url(self, bucket: str, key: str) -> str:
        self.path_for(bucket, key)
        return f"{self.public_base_url}/{quote(bucket)}/{quote(key)}"
