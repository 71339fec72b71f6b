"""Tests for the deployment idempotency record."""

import json
from unittest.mock import Mock

import pytest

from bosh_micro.config import DeploymentConfigService
from bosh_micro.deployment.record import DeploymentRecord
from bosh_micro.errors import PipelineError
from bosh_micro.release.release import Job, Release


def make_release(fingerprint="job-fp"):
    return Release(name="cpi", version="1", jobs=[Job(name="cpi", fingerprint=fingerprint)])


def make_stemcell(fingerprint="stemcell-fp"):
    stemcell = Mock()
    stemcell.fingerprint = fingerprint
    return stemcell


class BrokenStemcell:
    @property
    def fingerprint(self):
        raise OSError("unreadable")


class TestDeploymentRecord:
    def test_not_deployed_without_record(self, manifest_file):
        record = DeploymentRecord()

        assert record.is_deployed(str(manifest_file), make_release(), make_stemcell()) is False

    def test_deployed_after_update(self, manifest_file):
        record = DeploymentRecord()
        release = make_release()
        record.is_deployed(str(manifest_file), release, make_stemcell())
        record.update(str(manifest_file), release)

        assert DeploymentRecord().is_deployed(str(manifest_file), make_release(), make_stemcell()) is True

    def test_update_writes_state_next_to_manifest(self, manifest_file):
        record = DeploymentRecord()
        release = make_release()
        record.is_deployed(str(manifest_file), release, make_stemcell())

        record.update(str(manifest_file), release)

        state = json.loads((manifest_file.parent / "deployment.json").read_text())
        stored = state["records"][str(manifest_file.resolve())]
        assert stored["release_fingerprint"] == release.fingerprint
        assert stored["stemcell_fingerprint"] == "stemcell-fp"
        assert len(stored["manifest_sha1"]) == 40

    @pytest.mark.parametrize("change", ["manifest", "release", "stemcell"])
    def test_any_change_means_not_deployed(self, manifest_file, change):
        record = DeploymentRecord()
        record.is_deployed(str(manifest_file), make_release(), make_stemcell())
        record.update(str(manifest_file), make_release())

        release, stemcell = make_release(), make_stemcell()
        if change == "manifest":
            manifest_file.write_text(manifest_file.read_text() + "\n# edited\n")
        elif change == "release":
            release = make_release(fingerprint="other")
        else:
            stemcell = make_stemcell(fingerprint="other")

        assert DeploymentRecord().is_deployed(str(manifest_file), release, stemcell) is False

    def test_missing_manifest_is_an_error(self, tmp_path):
        with pytest.raises(PipelineError, match="Calculating sha1 of deployment manifest"):
            DeploymentRecord().is_deployed(str(tmp_path / "gone.yml"), make_release(), make_stemcell())

    def test_fingerprint_failure_is_an_error(self, manifest_file):
        stemcell = BrokenStemcell()

        with pytest.raises(PipelineError, match="Calculating stemcell fingerprint: unreadable"):
            DeploymentRecord().is_deployed(str(manifest_file), make_release(), stemcell)

    def test_corrupt_state_file_is_an_error(self, manifest_file):
        (manifest_file.parent / "deployment.json").write_text("{")

        with pytest.raises(PipelineError, match="Loading deployment record"):
            DeploymentRecord().is_deployed(str(manifest_file), make_release(), make_stemcell())

    def test_uses_config_service_factory(self, manifest_file, tmp_path):
        state_path = tmp_path / "elsewhere" / "state.json"
        record = DeploymentRecord(config_service_factory=lambda _: DeploymentConfigService(state_path))

        record.is_deployed(str(manifest_file), make_release(), make_stemcell())
        record.update(str(manifest_file), make_release())

        assert state_path.exists()

    def test_update_without_checked_stemcell_is_an_error(self, manifest_file):
        with pytest.raises(PipelineError, match="no stemcell fingerprint observed"):
            DeploymentRecord().update(str(manifest_file), make_release())

        assert not (manifest_file.parent / "deployment.json").exists()

    def test_update_accepts_differently_spelled_path(self, manifest_file):
        record = DeploymentRecord()
        release = make_release()
        record.is_deployed(str(manifest_file), release, make_stemcell())

        record.update(f"{manifest_file.parent}/./{manifest_file.name}", release)

        assert DeploymentRecord().is_deployed(str(manifest_file), make_release(), make_stemcell()) is True
