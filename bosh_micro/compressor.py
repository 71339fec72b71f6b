"""
Tarball compression helpers.

compress_files_in_dir() produces a .tgz whose members are relative to the
compressed directory, so decompress_file_to_dir() recreates the same tree
in a new location.
"""

import logging
import os
import tarfile
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class Compressor:
    """Compresses directories into temporary tarballs and back."""

    def __init__(self, temp_root: Optional[str] = None):
        self.temp_root = temp_root

    def compress_files_in_dir(self, directory: str) -> str:
        """
        Tar+gzip every entry of directory.

        Returns:
            Path of the tarball (the caller cleans it up with cleanup_tarball)
        """
        fd, tarball_path = tempfile.mkstemp(prefix="bosh-micro-tarball-", suffix=".tgz", dir=self.temp_root)
        os.close(fd)
        try:
            with tarfile.open(tarball_path, "w:gz") as tar:
                for entry in sorted(os.listdir(directory)):
                    tar.add(os.path.join(directory, entry), arcname=entry)
        except Exception:
            self.cleanup_tarball(tarball_path)
            raise
        logger.debug(f"Compressed {directory} into {tarball_path}")
        return tarball_path

    def decompress_file_to_dir(self, tarball_path: str, directory: str) -> None:
        """
        Extract tarball_path into directory.

        Raises:
            tarfile.TarError: Unreadable archive or a member escaping directory
        """
        target = Path(directory)
        target.mkdir(parents=True, exist_ok=True)
        with tarfile.open(tarball_path, "r:*") as tar:
            tar.extractall(target, filter="data")

    def cleanup_tarball(self, tarball_path: str) -> None:
        try:
            os.remove(tarball_path)
        except FileNotFoundError:
            pass
