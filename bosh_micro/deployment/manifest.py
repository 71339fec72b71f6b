"""
Deployment manifest model and parser.

One YAML file describes both the VM deployment (name, networks,
resource_pools, jobs, properties) and how to reach the cloud provider
(the `cloud_provider` section: registry, ssh_tunnel, mbus, properties).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from bosh_micro.errors import ValidationError


@dataclass
class Registry:
    username: str = ""
    password: str = ""
    host: str = ""
    port: int = 0

    def is_empty(self) -> bool:
        return not (self.username or self.password or self.host or self.port)


@dataclass
class SSHTunnel:
    host: str = ""
    port: int = 0
    user: str = ""
    password: str = ""
    private_key: str = ""

    def is_empty(self) -> bool:
        return not self.host


@dataclass
class Network:
    name: str
    type: str = "dynamic"
    cloud_properties: Dict[str, Any] = field(default_factory=dict)
    ip: str = ""
    netmask: str = ""
    gateway: str = ""
    dns: List[str] = field(default_factory=list)


@dataclass
class ResourcePool:
    name: str
    network: str = ""
    cloud_properties: Dict[str, Any] = field(default_factory=dict)
    env: Dict[str, Any] = field(default_factory=dict)


@dataclass
class JobNetwork:
    name: str
    static_ips: List[str] = field(default_factory=list)


@dataclass
class ManifestJob:
    name: str
    instances: int = 1
    resource_pool: str = ""
    networks: List[JobNetwork] = field(default_factory=list)
    persistent_disk: int = 0
    templates: List[Dict[str, Any]] = field(default_factory=list)
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Manifest:
    name: str
    jobs: List[ManifestJob] = field(default_factory=list)
    networks: List[Network] = field(default_factory=list)
    resource_pools: List[ResourcePool] = field(default_factory=list)
    properties: Dict[str, Any] = field(default_factory=dict)

    def network_by_name(self, name: str) -> Optional[Network]:
        return next((n for n in self.networks if n.name == name), None)

    def resource_pool_by_name(self, name: str) -> Optional[ResourcePool]:
        return next((r for r in self.resource_pools if r.name == name), None)


@dataclass
class CPIDeploymentManifest:
    name: str
    registry: Registry = field(default_factory=Registry)
    ssh_tunnel: SSHTunnel = field(default_factory=SSHTunnel)
    mbus: str = ""
    properties: Dict[str, Any] = field(default_factory=dict)


def _mapping(value: Any, where: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{where} must be a mapping")
    return value


def _list(value: Any, where: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{where} must be a list")
    return value


class Parser:
    """Reads a deployment manifest file."""

    def parse(self, path: str) -> Tuple[Manifest, CPIDeploymentManifest]:
        """
        Parse the deployment manifest at path.

        Raises:
            ValidationError: The file is missing, not YAML, or mis-shaped
        """
        try:
            with open(Path(path), "r") as f:
                raw = yaml.safe_load(f) or {}
        except OSError as e:
            raise ValidationError(f"Reading file '{path}': {e}") from e
        except yaml.YAMLError as e:
            raise ValidationError(f"Parsing YAML in '{path}': {e}") from e

        raw = _mapping(raw, "manifest")
        return self._deployment(raw), self._cpi_deployment(raw)

    def _deployment(self, raw: Dict[str, Any]) -> Manifest:
        networks = [
            Network(
                name=n.get("name", ""),
                type=n.get("type", "dynamic"),
                cloud_properties=_mapping(n.get("cloud_properties"), "network cloud_properties"),
                ip=n.get("ip", ""),
                netmask=n.get("netmask", ""),
                gateway=n.get("gateway", ""),
                dns=_list(n.get("dns"), "network dns"),
            )
            for n in _list(raw.get("networks"), "networks")
        ]
        resource_pools = [
            ResourcePool(
                name=r.get("name", ""),
                network=r.get("network", ""),
                cloud_properties=_mapping(r.get("cloud_properties"), "resource pool cloud_properties"),
                env=_mapping(r.get("env"), "resource pool env"),
            )
            for r in _list(raw.get("resource_pools"), "resource_pools")
        ]
        jobs = [
            ManifestJob(
                name=j.get("name", ""),
                instances=j.get("instances", 1),
                resource_pool=j.get("resource_pool", ""),
                networks=[
                    JobNetwork(name=jn.get("name", ""), static_ips=_list(jn.get("static_ips"), "static_ips"))
                    for jn in _list(j.get("networks"), "job networks")
                ],
                persistent_disk=j.get("persistent_disk", 0),
                templates=_list(j.get("templates"), "job templates"),
                properties=_mapping(j.get("properties"), "job properties"),
            )
            for j in _list(raw.get("jobs"), "jobs")
        ]
        return Manifest(
            name=raw.get("name", ""),
            jobs=jobs,
            networks=networks,
            resource_pools=resource_pools,
            properties=_mapping(raw.get("properties"), "properties"),
        )

    def _cpi_deployment(self, raw: Dict[str, Any]) -> CPIDeploymentManifest:
        cloud_provider = _mapping(raw.get("cloud_provider"), "cloud_provider")
        registry = _mapping(cloud_provider.get("registry"), "cloud_provider.registry")
        ssh_tunnel = _mapping(cloud_provider.get("ssh_tunnel"), "cloud_provider.ssh_tunnel")
        return CPIDeploymentManifest(
            name=raw.get("name", ""),
            registry=Registry(
                username=registry.get("username", ""),
                password=registry.get("password", ""),
                host=registry.get("host", ""),
                port=int(registry.get("port", 0) or 0),
            ),
            ssh_tunnel=SSHTunnel(
                host=ssh_tunnel.get("host", ""),
                port=int(ssh_tunnel.get("port", 0) or 0),
                user=ssh_tunnel.get("user", ""),
                password=ssh_tunnel.get("password", ""),
                private_key=ssh_tunnel.get("private_key", ""),
            ),
            mbus=cloud_provider.get("mbus", ""),
            properties=_mapping(cloud_provider.get("properties"), "cloud_provider.properties"),
        )
