"""Job installer - unpacks compiled job templates into jobs/<name>."""

import logging
import shutil
from pathlib import Path

from bosh_micro.blobstore import LocalBlobstore
from bosh_micro.compressor import Compressor
from bosh_micro.errors import PipelineError
from bosh_micro.release.release import Job
from bosh_micro.templatescompiler.templates_repo import TemplatesRepo

logger = logging.getLogger(__name__)


class JobInstaller:
    """Installs jobs from the blob store using the templates repo records."""

    def __init__(self, jobs_dir: Path, blobstore: LocalBlobstore, templates_repo: TemplatesRepo, compressor: Compressor):
        self.jobs_dir = Path(jobs_dir)
        self.blobstore = blobstore
        self.templates_repo = templates_repo
        self.compressor = compressor

    def install(self, job: Job) -> Path:
        """
        Returns:
            The installed job directory

        Raises:
            PipelineError: No compiled templates for the job or the blob is unusable
        """
        try:
            record = self.templates_repo.find(job)
        except Exception as e:
            raise PipelineError(f"Finding compiled templates for job '{job.name}': {e}") from e
        if record is None:
            raise PipelineError(f"Finding compiled templates for job '{job.name}': no record in templates repo")

        try:
            blob_path = self.blobstore.get(record.blob_id, record.blob_sha1)
        except Exception as e:
            raise PipelineError(f"Getting blob for job '{job.name}': {e}") from e

        job_dir = self.jobs_dir / job.name
        shutil.rmtree(job_dir, ignore_errors=True)
        try:
            self.compressor.decompress_file_to_dir(str(blob_path), str(job_dir))
        except Exception as e:
            raise PipelineError(f"Installing job '{job.name}' into {job_dir}: {e}") from e

        logger.info(f"Installed job '{job.name}' into {job_dir}")
        return job_dir
