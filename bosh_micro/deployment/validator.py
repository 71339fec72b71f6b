"""Deployment manifest validation."""

from typing import List

from bosh_micro.deployment.manifest import Manifest
from bosh_micro.errors import ValidationError


class DeploymentValidator:
    """Semantic checks on a parsed deployment manifest."""

    def validate(self, manifest: Manifest) -> None:
        """
        Raises:
            ValidationError: Listing every problem found
        """
        errors: List[str] = []

        if not manifest.name:
            errors.append("name must be provided")

        network_names = set()
        for index, network in enumerate(manifest.networks):
            if not network.name:
                errors.append(f"networks[{index}].name must be provided")
            elif network.name in network_names:
                errors.append(f"networks[{index}].name '{network.name}' must be unique")
            network_names.add(network.name)
            if network.type not in ("manual", "dynamic", "vip"):
                errors.append(f"networks[{index}].type must be 'manual', 'dynamic' or 'vip'")

        pool_names = set()
        for index, pool in enumerate(manifest.resource_pools):
            if not pool.name:
                errors.append(f"resource_pools[{index}].name must be provided")
            pool_names.add(pool.name)
            if pool.network and pool.network not in network_names:
                errors.append(f"resource_pools[{index}].network must be the name of a network")

        if not manifest.jobs:
            errors.append("jobs must contain at least one job")

        job_names = set()
        for index, job in enumerate(manifest.jobs):
            if not job.name:
                errors.append(f"jobs[{index}].name must be provided")
            elif job.name in job_names:
                errors.append(f"jobs[{index}].name '{job.name}' must be unique")
            job_names.add(job.name)
            if job.instances < 0:
                errors.append(f"jobs[{index}].instances must be >= 0")
            if job.persistent_disk < 0:
                errors.append(f"jobs[{index}].persistent_disk must be >= 0")
            if job.resource_pool and job.resource_pool not in pool_names:
                errors.append(f"jobs[{index}].resource_pool must be the name of a resource pool")
            for network_index, job_network in enumerate(job.networks):
                if job_network.name not in network_names:
                    errors.append(f"jobs[{index}].networks[{network_index}] must be the name of a network")

        if errors:
            raise ValidationError("; ".join(errors))
