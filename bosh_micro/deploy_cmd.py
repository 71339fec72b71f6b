"""
Deploy command - the end-to-end deploy pipeline.

Stages, strictly in order:
1. validate     manifest (parse + validate), CPI release and stemcell exist
2. install CPI  extract the CPI release and install it -> Cloud
3. stemcell     extract the stemcell tarball
4. idempotency  skip everything below when nothing changed
5. registry     start when configured, always stopped afterwards
6. deploy       Deployer drives the Cloud and the agent
7. finalize     update the deployment record, report file locations

Extracted release and stemcell directories are removed on every exit path.
"""

import logging
import os
from typing import Callable, Optional, Protocol, Tuple

from bosh_micro.cloud.cloud import Cloud
from bosh_micro.config import DeploymentConfigService, UserConfig
from bosh_micro.deployment.manifest import CPIDeploymentManifest, Manifest, Registry, SSHTunnel
from bosh_micro.errors import DeployError
from bosh_micro.eventlog import EventLogger, Stage
from bosh_micro.release.release import Release
from bosh_micro.stemcell import ExtractedStemcell
from bosh_micro.ui import UI

logger = logging.getLogger(__name__)


# Collaborator interfaces

class ManifestParser(Protocol):
    def parse(self, path: str) -> Tuple[Manifest, CPIDeploymentManifest]: ...


class ManifestValidator(Protocol):
    def validate(self, manifest: Manifest) -> None: ...


class CPIInstaller(Protocol):
    def extract(self, tarball_path: str) -> Release: ...

    def install(self, cpi_manifest: CPIDeploymentManifest, release: Release) -> Cloud: ...


class StemcellExtractor(Protocol):
    def extract(self, tarball_path: str) -> ExtractedStemcell: ...


class DeploymentRecorder(Protocol):
    def is_deployed(self, manifest_path: str, release: Release, stemcell: ExtractedStemcell) -> bool: ...

    def update(self, manifest_path: str, release: Release) -> None: ...


class RegistryServer(Protocol):
    def stop(self) -> None: ...


class RegistryServerManager(Protocol):
    def start(self, username: str, password: str, host: str, port: int) -> RegistryServer: ...


class VMDeployer(Protocol):
    def deploy(self, cloud: Cloud, manifest: Manifest, stemcell: ExtractedStemcell,
               registry: Registry, ssh_tunnel: SSHTunnel, mbus_url: str) -> None: ...


class DeployCmd:
    """Runs the deploy pipeline for the configured deployment manifest."""

    def __init__(
        self,
        ui: UI,
        user_config: UserConfig,
        parser: ManifestParser,
        validator: ManifestValidator,
        installer_factory: Callable[[str], CPIInstaller],
        stemcell_extractor: StemcellExtractor,
        deployment_record: DeploymentRecorder,
        registry_server_manager: RegistryServerManager,
        deployer: VMDeployer,
        event_logger: EventLogger,
        deployment_config_factory: Callable[[str], DeploymentConfigService] = DeploymentConfigService.for_manifest,
    ):
        """
        Args:
            installer_factory: Builds the CPI installer for a deployment id
            deployment_config_factory: Maps a manifest path to its state file service
        """
        self.ui = ui
        self.user_config = user_config
        self.parser = parser
        self.validator = validator
        self.installer_factory = installer_factory
        self.stemcell_extractor = stemcell_extractor
        self.deployment_record = deployment_record
        self.registry_server_manager = registry_server_manager
        self.deployer = deployer
        self.event_logger = event_logger
        self.deployment_config_factory = deployment_config_factory

    def run(self, cpi_release_tarball_path: str, stemcell_tarball_path: str) -> None:
        """
        Deploy the configured manifest with the given CPI release and stemcell.

        Raises:
            DeployError: The first failing stage, with context
        """
        manifest_path = self._manifest_path()

        manifest, cpi_manifest = self._validate(manifest_path, cpi_release_tarball_path, stemcell_tarball_path)

        config_service = self.deployment_config_factory(manifest_path)
        try:
            deployment_id = config_service.load().deployment_id
        except Exception as e:
            raise DeployError(f"Loading deployment state '{config_service.path}': {e}") from e

        installer = self.installer_factory(deployment_id)
        try:
            release = installer.extract(cpi_release_tarball_path)
        except Exception as e:
            raise DeployError(f"Extracting CPI release '{cpi_release_tarball_path}': {e}") from e

        try:
            self._install_and_deploy(
                installer, release, manifest_path, manifest, cpi_manifest, stemcell_tarball_path,
                str(config_service.path),
            )
        finally:
            release.delete()

    def _manifest_path(self) -> str:
        manifest_path = self.user_config.deployment_manifest_path
        if not manifest_path:
            self.ui.error("Deployment manifest not set")
            raise DeployError("Running deploy cmd: Deployment manifest not set")

        if not os.path.exists(manifest_path):
            self.ui.error("Deployment manifest does not exist")
            raise DeployError(f"Running deploy cmd: Deployment manifest does not exist at '{manifest_path}'")
        return manifest_path

    def _validate(
        self, manifest_path: str, cpi_release_tarball_path: str, stemcell_tarball_path: str,
    ) -> Tuple[Manifest, CPIDeploymentManifest]:
        stage = self.event_logger.new_stage("validating")
        stage.start()

        step = stage.new_step("Validating deployment manifest")
        step.start()
        try:
            manifest, cpi_manifest = self.parser.parse(manifest_path)
        except Exception as e:
            message = f"Parsing deployment manifest '{manifest_path}': {e}"
            step.fail(message)
            raise DeployError(message) from e
        try:
            self.validator.validate(manifest)
        except Exception as e:
            message = f"Validating deployment manifest: {e}"
            step.fail(message)
            raise DeployError(message) from e
        step.finish()

        self._validate_exists(stage, "Validating cpi release", cpi_release_tarball_path, "CPI release")
        self._validate_exists(stage, "Validating stemcell", stemcell_tarball_path, "stemcell")

        stage.finish()
        return manifest, cpi_manifest

    def _validate_exists(self, stage: Stage, step_name: str, path: str, what: str) -> None:
        step = stage.new_step(step_name)
        step.start()
        if not os.path.exists(path):
            message = f"Verifying that the {what} '{path}' exists"
            step.fail(message)
            raise DeployError(message)
        step.finish()

    def _install_and_deploy(
        self,
        installer: CPIInstaller,
        release: Release,
        manifest_path: str,
        manifest: Manifest,
        cpi_manifest: CPIDeploymentManifest,
        stemcell_tarball_path: str,
        state_path: str,
    ) -> None:
        try:
            cloud = installer.install(cpi_manifest, release)
        except Exception as e:
            raise DeployError(f"Installing CPI release '{release}': {e}") from e

        try:
            stemcell = self.stemcell_extractor.extract(stemcell_tarball_path)
        except Exception as e:
            raise DeployError(f"Extracting stemcell from '{stemcell_tarball_path}': {e}") from e

        try:
            try:
                deployed = self.deployment_record.is_deployed(manifest_path, release, stemcell)
            except Exception as e:
                raise DeployError(f"Checking if deployment has changed: {e}") from e

            if deployed:
                self.ui.say("No deployment, stemcell or cpi release changes. Skipping deploy.")
                return

            self._deploy_with_registry(cloud, manifest, cpi_manifest, stemcell)
        finally:
            stemcell.delete()

        try:
            self.deployment_record.update(manifest_path, release)
        except Exception as e:
            raise DeployError(f"Updating deployment record: {e}") from e

        self.ui.say(f"Deployment manifest: '{manifest_path}'")
        self.ui.say(f"Deployment state: '{state_path}'")

    def _deploy_with_registry(
        self, cloud: Cloud, manifest: Manifest, cpi_manifest: CPIDeploymentManifest, stemcell: ExtractedStemcell,
    ) -> None:
        registry = cpi_manifest.registry
        server: Optional[RegistryServer] = None
        if not registry.is_empty():
            try:
                server = self.registry_server_manager.start(
                    registry.username, registry.password, registry.host, registry.port,
                )
            except Exception as e:
                raise DeployError(f"Starting registry: {e}") from e

        deployed = False
        try:
            self.deployer.deploy(
                cloud, manifest, stemcell, registry, cpi_manifest.ssh_tunnel, cpi_manifest.mbus,
            )
            deployed = True
        except Exception as e:
            raise DeployError(f"Deploying Microbosh: {e}") from e
        finally:
            if server is not None:
                try:
                    server.stop()
                except Exception as e:
                    if deployed:
                        raise DeployError(f"Stopping registry: {e}") from e
                    # The deploy error is already propagating
                    logger.warning(f"Stopping registry after failed deploy: {e}")
