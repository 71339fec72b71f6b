"""
Release extraction.

Layout of a release tarball:
    release.MF                 name, version, jobs[], packages[]
    jobs/<name>.tgz            job.MF + templates/
    packages/<name>.tgz        packaging script + sources

Jobs are unpacked to <extracted>/extracted_jobs/<name>, packages to
<extracted>/extracted_packages/<name>.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict

import yaml

from bosh_micro.compressor import Compressor
from bosh_micro.release.release import Job, Package, Release

logger = logging.getLogger(__name__)


class ReleaseExtractionError(Exception):
    """Release tarball could not be extracted or read."""
    pass


def _load_manifest(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ReleaseExtractionError(f"Reading manifest '{path}': file does not exist")
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ReleaseExtractionError(f"Parsing manifest '{path}': {e}") from e
    if not isinstance(data, dict):
        raise ReleaseExtractionError(f"Parsing manifest '{path}': expected a mapping")
    return data


class ReleaseExtractor:
    """Unpacks release tarballs into temporary directories."""

    def __init__(self, compressor: Compressor):
        self.compressor = compressor

    def extract(self, tarball_path: str) -> Release:
        """
        Extract a release tarball.

        The returned Release owns the extraction directory.

        Raises:
            ReleaseExtractionError: Unreadable tarball or manifests
        """
        extracted_path = tempfile.mkdtemp(prefix="bosh-micro-release-")
        try:
            return self._extract_into(tarball_path, Path(extracted_path))
        except Exception:
            shutil.rmtree(extracted_path, ignore_errors=True)
            raise

    def _extract_into(self, tarball_path: str, root: Path) -> Release:
        try:
            self.compressor.decompress_file_to_dir(tarball_path, str(root))
        except Exception as e:
            raise ReleaseExtractionError(f"Extracting release '{tarball_path}': {e}") from e

        manifest = _load_manifest(root / "release.MF")

        packages = {}
        for entry in manifest.get("packages") or []:
            package = Package(
                name=entry["name"],
                version=str(entry.get("version", "")),
                fingerprint=entry.get("fingerprint", ""),
                sha1=entry.get("sha1", ""),
                dependency_names=list(entry.get("dependencies") or []),
            )
            package_dir = root / "extracted_packages" / package.name
            self._extract_nested(root / "packages" / f"{package.name}.tgz", package_dir)
            package.extracted_path = str(package_dir)
            packages[package.name] = package

        for package in packages.values():
            package.dependencies = [packages[n] for n in package.dependency_names if n in packages]

        jobs = []
        for entry in manifest.get("jobs") or []:
            job_dir = root / "extracted_jobs" / entry["name"]
            self._extract_nested(root / "jobs" / f"{entry['name']}.tgz", job_dir)
            job_manifest = _load_manifest(job_dir / "job.MF")
            package_names = list(job_manifest.get("packages") or [])
            jobs.append(Job(
                name=entry["name"],
                version=str(entry.get("version", "")),
                fingerprint=entry.get("fingerprint", ""),
                sha1=entry.get("sha1", ""),
                extracted_path=str(job_dir),
                templates=dict(job_manifest.get("templates") or {}),
                package_names=package_names,
                packages=[packages[n] for n in package_names if n in packages],
                properties=dict(job_manifest.get("properties") or {}),
            ))

        release = Release(
            name=manifest.get("name", ""),
            version=str(manifest.get("version", "")),
            jobs=jobs,
            packages=list(packages.values()),
            extracted_path=str(root),
        )
        logger.info(f"Extracted release {release} to {root}")
        return release

    def _extract_nested(self, tarball: Path, destination: Path) -> None:
        if not tarball.exists():
            raise ReleaseExtractionError(f"Release is missing '{tarball.name}'")
        try:
            self.compressor.decompress_file_to_dir(str(tarball), str(destination))
        except Exception as e:
            raise ReleaseExtractionError(f"Extracting '{tarball.name}': {e}") from e
