"""Tests for CPI installation: package compilation, job install, Cloud binding."""

import subprocess
from unittest.mock import Mock

import pytest

from bosh_micro.blobstore import LocalBlobstore
from bosh_micro.compressor import Compressor
from bosh_micro.cpi.installer import new_installer
from bosh_micro.cpi.job_installer import JobInstaller
from bosh_micro.cpi.package_compiler import PackageCompiler, dependency_order
from bosh_micro.deployment.manifest import CPIDeploymentManifest
from bosh_micro.errors import PipelineError, ValidationError
from bosh_micro.release.release import Job, Package
from bosh_micro.templatescompiler.templates_repo import TemplateRecord, TemplatesRepo

CPI_TEMPLATE = (
    "#!/bin/sh\n"
    "cat > /dev/null\n"
    "echo '{\"result\": \"{{ p(\"cpi.answer\") }}\", \"log\": \"{{ spec.deployment }}\"}'\n"
)


def make_package(tmp_path, name, dependencies=(), fingerprint=None):
    source = tmp_path / "sources" / name
    source.mkdir(parents=True, exist_ok=True)
    (source / "packaging").write_text("echo built > \"$BOSH_INSTALL_TARGET/built\"\n")
    return Package(name=name, fingerprint=fingerprint or f"{name}-fp", extracted_path=str(source),
                   dependencies=list(dependencies), dependency_names=[d.name for d in dependencies])


def ok_runner():
    return Mock(return_value=subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr=""))


class TestDependencyOrder:
    def test_dependencies_first(self, tmp_path):
        libyaml = make_package(tmp_path, "libyaml")
        ruby = make_package(tmp_path, "ruby", [libyaml])
        cpi = make_package(tmp_path, "cpi", [ruby])

        assert [p.name for p in dependency_order([cpi, ruby, libyaml])] == ["libyaml", "ruby", "cpi"]

    def test_cycle(self, tmp_path):
        a = make_package(tmp_path, "a")
        b = make_package(tmp_path, "b", [a])
        a.dependencies = [b]

        with pytest.raises(PipelineError, match="cycle a -> b -> a"):
            dependency_order([a, b])


class TestPackageCompiler:
    def test_runs_packaging_with_targets(self, tmp_path):
        runner = ok_runner()
        package = make_package(tmp_path, "ruby")
        compiler = PackageCompiler(tmp_path / "packages", runner=runner)

        compiler.compile([package])

        args, kwargs = runner.call_args
        assert args == (["bash", "-x", "packaging"],)
        assert kwargs["env"]["BOSH_INSTALL_TARGET"] == str(tmp_path / "packages" / "ruby")
        assert kwargs["env"]["BOSH_PACKAGES_DIR"] == str(tmp_path / "packages")
        assert kwargs["env"]["BOSH_COMPILE_TARGET"] == kwargs["cwd"]
        assert (tmp_path / "packages" / "ruby" / ".fingerprint").read_text() == "ruby-fp"

    def test_skips_already_compiled(self, tmp_path):
        runner = ok_runner()
        package = make_package(tmp_path, "ruby")
        compiler = PackageCompiler(tmp_path / "packages", runner=runner)
        compiler.compile([package])

        compiler.compile([package])

        assert runner.call_count == 1
        assert compiler.is_compiled(package)

    def test_stops_at_first_failure(self, tmp_path):
        runner = Mock(return_value=subprocess.CompletedProcess(args=[], returncode=2, stdout="out", stderr="err"))
        first = make_package(tmp_path, "first")
        second = make_package(tmp_path, "second")

        with pytest.raises(PipelineError, match="Compiling package 'first': packaging script failed \\(exit 2\\)"):
            PackageCompiler(tmp_path / "packages", runner=runner).compile([first, second])

        assert runner.call_count == 1

    def test_missing_packaging_script(self, tmp_path):
        package = make_package(tmp_path, "ruby")
        (tmp_path / "sources" / "ruby" / "packaging").unlink()

        with pytest.raises(PipelineError, match="missing packaging script"):
            PackageCompiler(tmp_path / "packages", runner=ok_runner()).compile([package])

    def test_real_packaging_script(self, tmp_path):
        package = make_package(tmp_path, "ruby")

        PackageCompiler(tmp_path / "packages").compile([package])

        assert (tmp_path / "packages" / "ruby" / "built").read_text() == "built\n"


class TestJobInstaller:
    def test_no_compiled_templates(self, tmp_path):
        installer = JobInstaller(
            tmp_path / "jobs", LocalBlobstore(tmp_path / "blobs"), TemplatesRepo(tmp_path / "t.json"), Compressor(),
        )

        with pytest.raises(PipelineError, match="no record in templates repo"):
            installer.install(Job(name="cpi", fingerprint="fp"))

    def test_corrupt_blob(self, tmp_path):
        blobstore = LocalBlobstore(tmp_path / "blobs")
        repo = TemplatesRepo(tmp_path / "t.json")
        artifact = tmp_path / "artifact"
        artifact.write_text("x")
        blob_id, _ = blobstore.create(str(artifact))
        job = Job(name="cpi", fingerprint="fp")
        repo.save(job, TemplateRecord(blob_id, "wrong-sha1"))

        with pytest.raises(PipelineError, match="Getting blob for job 'cpi'"):
            JobInstaller(tmp_path / "jobs", blobstore, repo, Compressor()).install(job)


class TestInstaller:
    def test_installs_release_and_binds_cloud(self, make_release_tgz, bosh_micro_home):
        installer = new_installer(bosh_micro_home, "fake-deployment-id", cpi_timeout=30)
        release = installer.extract(str(make_release_tgz(templates={"cpi.sh.j2": CPI_TEMPLATE})))
        try:
            cloud = installer.install(
                CPIDeploymentManifest(name="microbosh", properties={"cpi": {"answer": 7}}), release,
            )
        finally:
            release.delete()

        installation = bosh_micro_home / "installations" / "fake-deployment-id"
        assert (installation / "jobs" / "cpi" / "bin" / "cpi").exists()
        assert (installation / "packages" / "cpi-pkg" / "packaging").exists()
        assert (installation / "templates.json").exists()

        output = cloud.cpi_cmd_runner.run("info")
        assert output.result == "7"
        assert output.log == "microbosh"
        assert cloud.cpi_cmd_runner.deployment_uuid == "fake-deployment-id"
        assert cloud.cpi_cmd_runner.timeout == 30

    def test_invalid_release_is_deleted(self, make_release_tgz, bosh_micro_home):
        installer = new_installer(bosh_micro_home, "id")
        tarball = make_release_tgz(templates={"cpi.sh.j2": CPI_TEMPLATE})
        installer.release_validator = Mock()
        installer.release_validator.validate.side_effect = ValidationError("fake-validation-error")

        with pytest.raises(ValidationError):
            installer.extract(str(tarball))

    def test_release_without_cpi_job(self, make_release_tgz, bosh_micro_home):
        installer = new_installer(bosh_micro_home, "id")
        release = installer.extract(str(make_release_tgz()))
        try:
            release.jobs[0].name = "not-cpi"
            with pytest.raises(PipelineError, match="release has no 'cpi' job"):
                installer.install(CPIDeploymentManifest(name="d"), release)
        finally:
            release.delete()

    def test_extract_failure(self, tmp_path, bosh_micro_home):
        with pytest.raises(PipelineError, match="Extracting CPI release"):
            new_installer(bosh_micro_home, "id").extract(str(tmp_path / "missing.tgz"))
