"""Cloud client - typed CPI methods on top of CPICmdRunner."""

import logging
from typing import Any, Dict, Optional

from bosh_micro.cloud.cpi_cmd_runner import CPICmdRunner
from bosh_micro.errors import EncodingError

logger = logging.getLogger(__name__)


class Cloud:
    """Infrastructure operations backed by the installed CPI executable."""

    def __init__(self, cpi_cmd_runner: CPICmdRunner):
        self.cpi_cmd_runner = cpi_cmd_runner

    def create_stemcell(self, image_path: str, cloud_properties: Dict[str, Any]) -> str:
        logger.info(f"Creating stemcell from {image_path}")
        output = self.cpi_cmd_runner.run("create_stemcell", image_path, cloud_properties)
        return _cid(output.result, "create_stemcell")

    def delete_stemcell(self, stemcell_cid: str) -> None:
        self.cpi_cmd_runner.run("delete_stemcell", stemcell_cid)

    def create_vm(
        self,
        agent_id: str,
        stemcell_cid: str,
        cloud_properties: Dict[str, Any],
        networks: Dict[str, Any],
        env: Optional[Dict[str, Any]] = None,
    ) -> str:
        logger.info(f"Creating VM for agent {agent_id} from stemcell {stemcell_cid}")
        output = self.cpi_cmd_runner.run(
            "create_vm",
            agent_id,
            stemcell_cid,
            cloud_properties,
            networks,
            [],
            env or {},
        )
        return _cid(output.result, "create_vm")

    def has_vm(self, vm_cid: str) -> bool:
        output = self.cpi_cmd_runner.run("has_vm", vm_cid)
        return bool(output.result)

    def delete_vm(self, vm_cid: str) -> None:
        self.cpi_cmd_runner.run("delete_vm", vm_cid)

    def create_disk(self, size: int, cloud_properties: Dict[str, Any], vm_cid: str) -> str:
        output = self.cpi_cmd_runner.run("create_disk", size, cloud_properties, vm_cid)
        return _cid(output.result, "create_disk")

    def attach_disk(self, vm_cid: str, disk_cid: str) -> None:
        self.cpi_cmd_runner.run("attach_disk", vm_cid, disk_cid)

    def __repr__(self) -> str:
        return f"Cloud(cpi={self.cpi_cmd_runner.cpi_job.executable_path})"


def _cid(result: Any, method: str) -> str:
    if not isinstance(result, str) or not result:
        raise EncodingError(f"CPI method '{method}' returned an invalid cid: {result!r}")
    return result
