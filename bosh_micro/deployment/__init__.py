"""Deployment manifest, validation, idempotency record and VM deployer."""

from bosh_micro.deployment.deployer import Deployer
from bosh_micro.deployment.manifest import (
    CPIDeploymentManifest,
    Manifest,
    ManifestJob,
    Parser,
    Registry,
    SSHTunnel,
)
from bosh_micro.deployment.record import DeploymentRecord
from bosh_micro.deployment.validator import DeploymentValidator

__all__ = [
    "CPIDeploymentManifest",
    "Deployer",
    "DeploymentRecord",
    "DeploymentValidator",
    "Manifest",
    "ManifestJob",
    "Parser",
    "Registry",
    "SSHTunnel",
]
