"""
CPI installer - turns a CPI release tarball into a usable Cloud client.

Installation layout (one per deployment):
    <home>/installations/<deployment_id>/
        blobs/            compiled job templates
        templates.json    templates repo index
        packages/<name>   compiled packages
        jobs/<name>       installed jobs (jobs/cpi/bin/cpi is the CPI)
"""

import logging
from pathlib import Path
from typing import Optional

from bosh_micro.blobstore import LocalBlobstore
from bosh_micro.cloud.cloud import Cloud
from bosh_micro.cloud.cpi_cmd_runner import CPICmdRunner, CPIJob
from bosh_micro.compressor import Compressor
from bosh_micro.cpi.job_installer import JobInstaller
from bosh_micro.cpi.package_compiler import PackageCompiler
from bosh_micro.deployment.manifest import CPIDeploymentManifest
from bosh_micro.errors import PipelineError
from bosh_micro.release.extractor import ReleaseExtractor
from bosh_micro.release.release import Release
from bosh_micro.release.validator import ReleaseValidator
from bosh_micro.templatescompiler.job_renderer import JobRenderer
from bosh_micro.templatescompiler.templates_compiler import TemplatesCompiler
from bosh_micro.templatescompiler.templates_repo import TemplatesRepo

logger = logging.getLogger(__name__)

CPI_JOB_NAME = "cpi"


class Installer:
    """Extracts, compiles and installs a CPI release."""

    def __init__(
        self,
        deployment_id: str,
        release_extractor: ReleaseExtractor,
        release_validator: ReleaseValidator,
        package_compiler: PackageCompiler,
        templates_compiler: TemplatesCompiler,
        job_installer: JobInstaller,
        cpi_timeout: Optional[float] = None,
    ):
        self.deployment_id = deployment_id
        self.release_extractor = release_extractor
        self.release_validator = release_validator
        self.package_compiler = package_compiler
        self.templates_compiler = templates_compiler
        self.job_installer = job_installer
        self.cpi_timeout = cpi_timeout

    def extract(self, tarball_path: str) -> Release:
        """
        Extract and validate a CPI release. The caller owns release.delete().

        Raises:
            PipelineError: Extraction failed
            ValidationError: The release is incomplete
        """
        try:
            release = self.release_extractor.extract(tarball_path)
        except Exception as e:
            raise PipelineError(f"Extracting CPI release '{tarball_path}': {e}") from e

        try:
            self.release_validator.validate(release)
        except Exception:
            release.delete()
            raise
        return release

    def install(self, cpi_manifest: CPIDeploymentManifest, release: Release) -> Cloud:
        """
        Compile packages and templates, install jobs, and bind a Cloud to the cpi job.

        Raises:
            PipelineError: Any install step failed
        """
        if release.find_job_by_name(CPI_JOB_NAME) is None:
            raise PipelineError(f"Installing CPI release '{release}': release has no '{CPI_JOB_NAME}' job")

        logger.info(f"Installing CPI release {release} for deployment {self.deployment_id}")
        self.package_compiler.compile(release.packages)
        self.templates_compiler.compile(release.jobs, cpi_manifest.name, cpi_manifest.properties)
        for job in release.jobs:
            self.job_installer.install(job)

        jobs_dir = self.job_installer.jobs_dir
        cpi_job = CPIJob(
            job_path=jobs_dir / CPI_JOB_NAME,
            jobs_dir=jobs_dir,
            packages_dir=self.package_compiler.packages_dir,
        )
        return Cloud(CPICmdRunner(cpi_job, self.deployment_id, timeout=self.cpi_timeout))


def new_installer(home: Path, deployment_id: str, cpi_timeout: Optional[float] = None) -> Installer:
    """Build an Installer whose state lives under <home>/installations/<deployment_id>."""
    installation_path = Path(home) / "installations" / deployment_id
    compressor = Compressor()
    blobstore = LocalBlobstore(installation_path / "blobs")
    templates_repo = TemplatesRepo(installation_path / "templates.json")

    return Installer(
        deployment_id=deployment_id,
        release_extractor=ReleaseExtractor(compressor),
        release_validator=ReleaseValidator(),
        package_compiler=PackageCompiler(installation_path / "packages", timeout=cpi_timeout),
        templates_compiler=TemplatesCompiler(JobRenderer(), compressor, blobstore, templates_repo),
        job_installer=JobInstaller(installation_path / "jobs", blobstore, templates_repo, compressor),
        cpi_timeout=cpi_timeout,
    )
