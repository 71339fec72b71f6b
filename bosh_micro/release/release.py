"""
Release model - jobs and packages extracted from a release tarball.

A Release owns its extraction directory; delete() removes it.
"""

import hashlib
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Package:
    name: str
    version: str = ""
    fingerprint: str = ""
    sha1: str = ""
    extracted_path: str = ""
    dependency_names: List[str] = field(default_factory=list)
    dependencies: List["Package"] = field(default_factory=list, repr=False)


@dataclass
class Job:
    """
    A release job.

    templates maps a source path (relative to the job's templates/ dir)
    to a destination path relative to the installed job directory.
    """

    name: str
    version: str = ""
    fingerprint: str = ""
    sha1: str = ""
    extracted_path: str = ""
    templates: Dict[str, str] = field(default_factory=dict)
    package_names: List[str] = field(default_factory=list)
    packages: List[Package] = field(default_factory=list, repr=False)
    properties: Dict[str, Any] = field(default_factory=dict)

    def default_properties(self) -> Dict[str, Any]:
        """Nested properties built from job.MF defaults ("a.b" -> {"a": {"b": ...}})."""
        result: Dict[str, Any] = {}
        for dotted, definition in self.properties.items():
            if not isinstance(definition, dict) or "default" not in definition:
                continue
            node = result
            parts = dotted.split(".")
            for part in parts[:-1]:
                node = node.setdefault(part, {})
            node[parts[-1]] = definition["default"]
        return result


@dataclass
class Release:
    name: str
    version: str
    jobs: List[Job] = field(default_factory=list)
    packages: List[Package] = field(default_factory=list)
    extracted_path: str = ""

    @property
    def fingerprint(self) -> str:
        """Stable identity of the release contents (name, version, job and package fingerprints)."""
        digest = hashlib.sha1()
        digest.update(f"{self.name}/{self.version}".encode("utf-8"))
        for job in sorted(self.jobs, key=lambda j: j.name):
            digest.update(f"job:{job.name}:{job.fingerprint}".encode("utf-8"))
        for package in sorted(self.packages, key=lambda p: p.name):
            digest.update(f"package:{package.name}:{package.fingerprint}".encode("utf-8"))
        return digest.hexdigest()

    def find_job_by_name(self, name: str) -> Optional[Job]:
        for job in self.jobs:
            if job.name == name:
                return job
        return None

    def exists(self) -> bool:
        return bool(self.extracted_path) and Path(self.extracted_path).exists()

    def delete(self) -> None:
        """Remove the extraction directory."""
        if self.extracted_path:
            logger.debug(f"Deleting extracted release {self.name} at {self.extracted_path}")
            shutil.rmtree(self.extracted_path, ignore_errors=True)

    def __str__(self) -> str:
        return f"{self.name}/{self.version}"
