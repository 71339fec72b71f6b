"""
Deployment record - decides whether a redeploy is needed.

The record for a manifest path is the triple
    (manifest sha1, release fingerprint, stemcell fingerprint)
as of the last successful deploy, kept in the deployment.json state file
next to the manifest.

is_deployed() is true only when all three current values equal the stored
ones. update() replaces the stored triple; the stemcell fingerprint it
writes is the one observed by the preceding is_deployed() call for the
same manifest path.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Optional

from bosh_micro.config import ConfigError, DeploymentConfigService
from bosh_micro.errors import PipelineError
from bosh_micro.release.release import Release
from bosh_micro.stemcell import ExtractedStemcell
from bosh_micro.utils import get_file_sha1

logger = logging.getLogger(__name__)


class DeploymentRecord:
    """Idempotency record backed by DeploymentConfigService."""

    def __init__(
        self,
        config_service_factory: Callable[[str], DeploymentConfigService] = DeploymentConfigService.for_manifest,
    ):
        self.config_service_factory = config_service_factory
        self._stemcell_fingerprints: Dict[str, str] = {}

    def is_deployed(self, manifest_path: str, release: Release, stemcell: ExtractedStemcell) -> bool:
        """
        Raises:
            PipelineError: A fingerprint or the state file could not be read
        """
        current = {
            "manifest_sha1": self._manifest_sha1(manifest_path),
            "release_fingerprint": self._fingerprint(lambda: release.fingerprint, "release"),
            "stemcell_fingerprint": self._fingerprint(lambda: stemcell.fingerprint, "stemcell"),
        }
        self._stemcell_fingerprints[_key(manifest_path)] = current["stemcell_fingerprint"]

        try:
            state = self.config_service_factory(manifest_path).load()
        except ConfigError as e:
            raise PipelineError(f"Loading deployment record: {e}") from e

        stored = state.records.get(_key(manifest_path))
        if stored is None:
            logger.info(f"No deployment record for {manifest_path}")
            return False

        deployed = all(stored.get(name) == value for name, value in current.items())
        logger.info(
            f"Deployment record for {manifest_path}: {'unchanged' if deployed else 'changed'}",
            extra={"event": "deployment_record_checked", "metadata": {"current": current, "stored": stored}},
        )
        return deployed

    def update(self, manifest_path: str, release: Release) -> None:
        """
        Persist the current triple for manifest_path.

        Raises:
            PipelineError: A fingerprint could not be computed, no stemcell was
                checked for manifest_path, or the state file could not be written
        """
        stemcell_fingerprint = self._stemcell_fingerprints.get(_key(manifest_path))
        if stemcell_fingerprint is None:
            raise PipelineError(
                f"Updating deployment record: no stemcell fingerprint observed for '{manifest_path}'"
            )

        record = {
            "manifest_sha1": self._manifest_sha1(manifest_path),
            "release_fingerprint": self._fingerprint(lambda: release.fingerprint, "release"),
            "stemcell_fingerprint": stemcell_fingerprint,
        }

        service = self.config_service_factory(manifest_path)
        try:
            state = service.load()
            state.records[_key(manifest_path)] = record
            service.save(state)
        except ConfigError as e:
            raise PipelineError(f"Updating deployment record: {e}") from e
        logger.info(f"Updated deployment record for {manifest_path}")

    def _manifest_sha1(self, manifest_path: str) -> str:
        try:
            return get_file_sha1(Path(manifest_path))
        except OSError as e:
            raise PipelineError(f"Calculating sha1 of deployment manifest '{manifest_path}': {e}") from e

    def _fingerprint(self, compute: Callable[[], Optional[str]], what: str) -> str:
        try:
            value = compute()
        except Exception as e:
            raise PipelineError(f"Calculating {what} fingerprint: {e}") from e
        if not value:
            raise PipelineError(f"Calculating {what} fingerprint: empty fingerprint")
        return value


def _key(manifest_path: str) -> str:
    return str(Path(manifest_path).resolve())
