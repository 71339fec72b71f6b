"""
Job renderer - renders a job's templates via Jinja2.

Each entry of Job.templates maps a source file under <job>/templates/ to a
destination path under the render directory. Templates see:

    properties   job.MF defaults overlaid with the deployment properties
    spec         {"deployment": <name>, "job": {"name": <job name>}}
    p(name, default)
                 dotted lookup into properties; raises when the property is
                 missing and no default is given
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from bosh_micro.release.release import Job

logger = logging.getLogger(__name__)

_MISSING = object()


class RenderError(Exception):
    """A job template could not be rendered."""
    pass


def merge_properties(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Deep-merge overrides onto defaults (overrides win)."""
    merged = dict(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_properties(merged[key], value)
        else:
            merged[key] = value
    return merged


def lookup_property(properties: Dict[str, Any], name: str, default: Any = _MISSING) -> Any:
    node: Any = properties
    for part in name.split("."):
        if isinstance(node, dict) and part in node:
            node = node[part]
        elif default is not _MISSING:
            return default
        else:
            raise RenderError(f"Can't find property '{name}'")
    return node


class JobRenderer:
    """Renders job templates from an extracted release into a directory."""

    def render(
        self,
        job: Job,
        source_path: str,
        destination_path: str,
        properties: Dict[str, Any],
        deployment_name: str,
    ) -> None:
        """
        Render every template of job.

        Args:
            job: Job whose templates are rendered
            source_path: The job's extracted directory
            destination_path: Directory receiving rendered files
            properties: Deployment properties
            deployment_name: Name of the deployment

        Raises:
            RenderError: Missing template, missing property or template error
        """
        templates_dir = Path(source_path) / "templates"
        env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        job_properties = merge_properties(job.default_properties(), properties or {})
        context = {
            "properties": job_properties,
            "spec": {"deployment": deployment_name, "job": {"name": job.name}},
            "p": lambda name, default=_MISSING: lookup_property(job_properties, name, default),
        }

        for source, destination in sorted(job.templates.items()):
            try:
                template = env.get_template(source)
                content = template.render(**context)
            except (TemplateError, RenderError) as e:
                raise RenderError(f"Rendering template '{source}' for job '{job.name}': {e}") from e

            output_path = Path(destination_path) / destination.lstrip("/")
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(content)
            if output_path.parent.name == "bin":
                os.chmod(output_path, 0o755)
            logger.debug(f"Rendered {job.name}/{source} -> {output_path}")
