"""
Deployer - creates and configures the single VM.

Sequence (each step tracked in the "deploying" event-log stage):
    upload stemcell -> create VM -> wait for agent -> stop -> apply -> start
    -> wait until the agent reports job_state "running"
"""

import logging
import math
import time
import uuid
from typing import Any, Callable, Dict, Optional

from bosh_micro.agentclient.agent_client import AgentClient
from bosh_micro.cloud.cloud import Cloud
from bosh_micro.deployment.manifest import Manifest, ManifestJob, Registry, SSHTunnel
from bosh_micro.errors import PipelineError, TransportError
from bosh_micro.eventlog import EventLogger, Stage
from bosh_micro.stemcell import ExtractedStemcell
from bosh_micro.templatescompiler.job_renderer import merge_properties
from bosh_micro.utils import retry_with_backoff

logger = logging.getLogger(__name__)


class Deployer:
    """Drives the Cloud and the AgentClient to bring up the VM."""

    def __init__(
        self,
        agent_client_factory: Callable[[str], AgentClient],
        event_logger: EventLogger,
        agent_ping_timeout: float = 300,
        agent_ping_delay: float = 1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.agent_client_factory = agent_client_factory
        self.event_logger = event_logger
        self.agent_ping_timeout = agent_ping_timeout
        self.agent_ping_delay = agent_ping_delay
        self._sleep = sleep

    def deploy(
        self,
        cloud: Cloud,
        manifest: Manifest,
        stemcell: ExtractedStemcell,
        registry: Registry,
        ssh_tunnel: SSHTunnel,
        mbus_url: str,
    ) -> None:
        """
        Raises:
            PipelineError: A step failed (the cause is chained)
        """
        if not manifest.jobs:
            raise PipelineError("Deploying: manifest has no jobs")
        job = manifest.jobs[0]

        if not ssh_tunnel.is_empty():
            logger.debug(f"SSH tunnel configured for {ssh_tunnel.host}:{ssh_tunnel.port}")
        if not registry.is_empty():
            logger.debug(f"Registry available at {registry.host}:{registry.port}")

        stage = self.event_logger.new_stage("deploying")
        stage.start()

        stemcell_cid = self._step(
            stage, f"Uploading stemcell '{stemcell}'",
            lambda: cloud.create_stemcell(stemcell.manifest.image_path, stemcell.manifest.cloud_properties),
        )

        agent_id = str(uuid.uuid4())
        pool = manifest.resource_pool_by_name(job.resource_pool)
        vm_cid = self._step(
            stage, f"Creating VM from stemcell '{stemcell_cid}'",
            lambda: cloud.create_vm(
                agent_id,
                stemcell_cid,
                pool.cloud_properties if pool else {},
                self._vm_networks(manifest, job),
                pool.env if pool else {},
            ),
        )
        logger.info(f"Created VM {vm_cid} for agent {agent_id}")

        agent_client = self.agent_client_factory(mbus_url)
        self._step(stage, f"Waiting for the agent on VM '{vm_cid}'", lambda: self._wait_for_agent(agent_client))
        self._step(stage, f"Stopping '{job.name}'", agent_client.stop)
        self._step(
            stage, f"Applying state for '{job.name}'",
            lambda: agent_client.apply(self._apply_spec(manifest, job, stemcell)),
        )
        self._step(stage, f"Starting '{job.name}'", agent_client.start)
        self._step(stage, f"Waiting for '{job.name}' to be running", lambda: self._wait_for_running(agent_client))

        stage.finish()

    def _step(self, stage: Stage, name: str, action: Callable[[], Any]) -> Any:
        step = stage.new_step(name)
        step.start()
        try:
            result = action()
        except Exception as e:
            step.fail(str(e))
            raise PipelineError(f"{name}: {e}") from e
        step.finish()
        return result

    def _attempts(self) -> int:
        return max(1, math.ceil(self.agent_ping_timeout / max(self.agent_ping_delay, 0.001)))

    def _wait_for_agent(self, agent_client: AgentClient) -> str:
        return retry_with_backoff(
            agent_client.ping,
            max_attempts=self._attempts(),
            backoff_seconds=self.agent_ping_delay,
            backoff_multiplier=1.0,
            retry_on=(TransportError,),
            logger=logger,
            sleep=self._sleep,
        )

    def _wait_for_running(self, agent_client: AgentClient) -> None:
        for _ in range(self._attempts()):
            state = agent_client.get_state()
            if state.job_state == "running":
                return
            logger.debug(f"Agent job_state is '{state.job_state}', waiting")
            self._sleep(self.agent_ping_delay)
        raise PipelineError(f"Job did not reach 'running' within {self.agent_ping_timeout}s")

    def _vm_networks(self, manifest: Manifest, job: ManifestJob) -> Dict[str, Any]:
        networks: Dict[str, Any] = {}
        for index, job_network in enumerate(job.networks):
            network = manifest.network_by_name(job_network.name)
            if network is None:
                continue
            spec: Dict[str, Any] = {
                "type": network.type,
                "cloud_properties": network.cloud_properties,
            }
            ip = job_network.static_ips[0] if job_network.static_ips else network.ip
            if ip:
                spec["ip"] = ip
            if network.netmask:
                spec["netmask"] = network.netmask
            if network.gateway:
                spec["gateway"] = network.gateway
            if network.dns:
                spec["dns"] = network.dns
            if index == 0:
                spec["default"] = ["dns", "gateway"]
            networks[network.name] = spec
        return networks

    def _apply_spec(self, manifest: Manifest, job: ManifestJob, stemcell: ExtractedStemcell) -> Dict[str, Any]:
        spec: Dict[str, Any] = dict(stemcell.apply_spec)
        spec.update({
            "deployment": manifest.name,
            "index": 0,
            "job": {"name": job.name, "templates": job.templates},
            "networks": self._vm_networks(manifest, job),
            "properties": merge_properties(manifest.properties, job.properties),
        })
        return spec


def agent_client_factory(http_client, reply_to: Optional[str] = None) -> Callable[[str], AgentClient]:
    """Build a factory producing AgentClients that share one HTTP client."""

    def factory(mbus_url: str) -> AgentClient:
        return AgentClient(mbus_url, http_client, reply_to=reply_to)

    return factory
