"""
Templates compiler - renders, packages and uploads job templates.

Jobs are processed one at a time, in the order given, and compilation
stops at the first failing job. For each job:

1. create a fresh temporary render directory (always removed afterwards)
2. render the job's templates into it
3. compress the directory into a tarball (always cleaned up afterwards)
4. upload the tarball to the blob store -> (blob_id, sha1)
5. save TemplateRecord(blob_id, sha1) for the job in the templates repo
"""

import logging
import shutil
import tempfile
from typing import Any, Dict, Iterable, Optional, Protocol, Tuple

from bosh_micro.errors import PipelineError
from bosh_micro.release.release import Job
from bosh_micro.templatescompiler.templates_repo import TemplateRecord

logger = logging.getLogger(__name__)


class JobRendererProtocol(Protocol):
    def render(self, job: Job, source_path: str, destination_path: str,
               properties: Dict[str, Any], deployment_name: str) -> None: ...


class CompressorProtocol(Protocol):
    def compress_files_in_dir(self, directory: str) -> str: ...

    def cleanup_tarball(self, tarball_path: str) -> None: ...


class BlobstoreProtocol(Protocol):
    def create(self, file_path: str) -> Tuple[str, str]: ...


class TemplatesRepoProtocol(Protocol):
    def save(self, job: Job, record: TemplateRecord) -> None: ...

    def find(self, job: Job) -> Optional[TemplateRecord]: ...


class TemplatesCompiler:
    """Compiles job templates into blob-store tarballs."""

    def __init__(
        self,
        job_renderer: JobRendererProtocol,
        compressor: CompressorProtocol,
        blobstore: BlobstoreProtocol,
        templates_repo: TemplatesRepoProtocol,
        temp_root: Optional[str] = None,
    ):
        self.job_renderer = job_renderer
        self.compressor = compressor
        self.blobstore = blobstore
        self.templates_repo = templates_repo
        self.temp_root = temp_root

    def compile(self, jobs: Iterable[Job], deployment_name: str, properties: Dict[str, Any]) -> None:
        """
        Compile every job in order, stopping at the first failure.

        Raises:
            PipelineError: Wrapping the failing step's error
        """
        for job in jobs:
            self._compile_job(job, deployment_name, properties)

    def _compile_job(self, job: Job, deployment_name: str, properties: Dict[str, Any]) -> None:
        try:
            render_dir = tempfile.mkdtemp(prefix=f"bosh-micro-{job.name}-", dir=self.temp_root)
        except OSError as e:
            raise PipelineError(f"Creating compilation directory for job '{job.name}': {e}") from e

        try:
            try:
                self.job_renderer.render(job, job.extracted_path, render_dir, properties, deployment_name)
            except Exception as e:
                raise PipelineError(f"Rendering templates for job '{job.name}': {e}") from e

            try:
                tarball_path = self.compressor.compress_files_in_dir(render_dir)
            except Exception as e:
                raise PipelineError(f"Compressing rendered job templates for job '{job.name}': {e}") from e

            try:
                self._upload_and_save(job, tarball_path)
            finally:
                self.compressor.cleanup_tarball(tarball_path)
        finally:
            shutil.rmtree(render_dir, ignore_errors=True)

    def _upload_and_save(self, job: Job, tarball_path: str) -> None:
        try:
            blob_id, blob_sha1 = self.blobstore.create(tarball_path)
        except Exception as e:
            raise PipelineError(f"Creating blob for job '{job.name}': {e}") from e

        record = TemplateRecord(blob_id=blob_id, blob_sha1=blob_sha1)
        try:
            self.templates_repo.save(job, record)
        except Exception as e:
            raise PipelineError(f"Saving job '{job.name}' to templates repo: {e}") from e

        logger.info(f"Compiled templates for job '{job.name}' into blob {blob_id}")
