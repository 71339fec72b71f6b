"""
Local blob store for compiled artifacts.

Blobs are copied under <root>/<blob_id>; create() returns the generated id
together with the content sha1 so callers can record and later verify it.
"""

import logging
import shutil
import uuid
from pathlib import Path
from typing import Tuple

from bosh_micro.utils import get_file_sha1

logger = logging.getLogger(__name__)


class BlobNotFoundError(Exception):
    """Requested blob does not exist."""
    pass


class BlobChecksumError(Exception):
    """Stored blob does not match the expected sha1."""
    pass


class LocalBlobstore:
    """Filesystem-backed blob store."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def create(self, file_path: str) -> Tuple[str, str]:
        """
        Store a copy of file_path.

        Returns:
            (blob_id, sha1)
        """
        self.root.mkdir(parents=True, exist_ok=True)
        blob_id = str(uuid.uuid4())
        sha1 = get_file_sha1(Path(file_path))
        shutil.copyfile(file_path, self.root / blob_id)
        logger.debug(f"Created blob {blob_id} (sha1 {sha1}) from {file_path}")
        return blob_id, sha1

    def get(self, blob_id: str, sha1: str) -> Path:
        """
        Return the path of a stored blob after verifying its sha1.

        Raises:
            BlobNotFoundError: Unknown blob id
            BlobChecksumError: Content changed since create()
        """
        path = self.root / blob_id
        if not path.exists():
            raise BlobNotFoundError(f"Blob '{blob_id}' not found in {self.root}")

        actual = get_file_sha1(path)
        if actual != sha1:
            raise BlobChecksumError(
                f"Blob '{blob_id}' sha1 mismatch: expected '{sha1}', got '{actual}'"
            )
        return path

    def delete(self, blob_id: str) -> None:
        path = self.root / blob_id
        if path.exists():
            path.unlink()
