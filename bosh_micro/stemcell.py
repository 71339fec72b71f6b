"""
Stemcell extraction.

A stemcell tarball holds:
    stemcell.MF       name, version, sha1, cloud_properties
    image             the disk image handed to the CPI
    apply_spec.yml    optional initial agent apply spec
"""

import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

from bosh_micro.compressor import Compressor

logger = logging.getLogger(__name__)


class StemcellExtractionError(Exception):
    """Stemcell tarball could not be extracted or read."""
    pass


@dataclass
class StemcellManifest:
    image_path: str
    name: str
    version: str
    sha1: str = ""
    cloud_properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ExtractedStemcell:
    """An extracted stemcell; owns extracted_path until delete()."""

    manifest: StemcellManifest
    apply_spec: Dict[str, Any]
    extracted_path: str

    @property
    def fingerprint(self) -> str:
        return self.manifest.sha1 or f"{self.manifest.name}/{self.manifest.version}"

    def delete(self) -> None:
        logger.debug(f"Deleting extracted stemcell at {self.extracted_path}")
        shutil.rmtree(self.extracted_path, ignore_errors=True)

    def __str__(self) -> str:
        return f"{self.manifest.name}/{self.manifest.version}"


class StemcellExtractor:
    """Unpacks stemcell tarballs into temporary directories."""

    def __init__(self, compressor: Compressor):
        self.compressor = compressor

    def extract(self, tarball_path: str) -> ExtractedStemcell:
        """
        Raises:
            StemcellExtractionError: Unreadable tarball or manifest
        """
        extracted_path = tempfile.mkdtemp(prefix="bosh-micro-stemcell-")
        try:
            return self._extract_into(tarball_path, Path(extracted_path))
        except Exception:
            shutil.rmtree(extracted_path, ignore_errors=True)
            raise

    def _extract_into(self, tarball_path: str, root: Path) -> ExtractedStemcell:
        try:
            self.compressor.decompress_file_to_dir(tarball_path, str(root))
        except Exception as e:
            raise StemcellExtractionError(f"Extracting stemcell '{tarball_path}': {e}") from e

        manifest_path = root / "stemcell.MF"
        try:
            with open(manifest_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise StemcellExtractionError(f"Reading stemcell manifest: {e}") from e
        except yaml.YAMLError as e:
            raise StemcellExtractionError(f"Parsing stemcell manifest: {e}") from e

        apply_spec: Dict[str, Any] = {}
        apply_spec_path = root / "apply_spec.yml"
        if apply_spec_path.exists():
            with open(apply_spec_path, "r") as f:
                apply_spec = yaml.safe_load(f) or {}

        manifest = StemcellManifest(
            image_path=str(root / "image"),
            name=data.get("name", ""),
            version=str(data.get("version", "")),
            sha1=data.get("sha1", ""),
            cloud_properties=data.get("cloud_properties") or {},
        )
        logger.info(f"Extracted stemcell {manifest.name}/{manifest.version} to {root}")
        return ExtractedStemcell(manifest=manifest, apply_spec=apply_spec, extracted_path=str(root))
