"""
Templates repo - records where each job's compiled templates live.

Records are keyed by (job name, job fingerprint) and persisted as a JSON
index file. A record is written once per successful compile.
"""

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Optional

from bosh_micro.release.release import Job

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateRecord:
    blob_id: str
    blob_sha1: str

    def is_valid(self) -> bool:
        return bool(self.blob_id) and bool(self.blob_sha1)


class TemplatesRepoError(Exception):
    """Index file could not be read or written."""
    pass


def _key(job: Job) -> str:
    return f"{job.name}:{job.fingerprint}"


class TemplatesRepo:
    """JSON-file backed store of TemplateRecords."""

    def __init__(self, index_path: Path):
        self.index_path = Path(index_path)

    def save(self, job: Job, record: TemplateRecord) -> None:
        """
        Raises:
            TemplatesRepoError: Invalid record or index I/O failure
        """
        if not record.is_valid():
            raise TemplatesRepoError(f"Saving template record for job '{job.name}': record is incomplete {record}")

        index = self._load()
        index[_key(job)] = asdict(record)
        try:
            self.index_path.parent.mkdir(parents=True, exist_ok=True)
            self.index_path.write_text(json.dumps(index, indent=2, sort_keys=True))
        except OSError as e:
            raise TemplatesRepoError(f"Writing templates index '{self.index_path}': {e}") from e
        logger.debug(f"Saved template record for {job.name}: {record}")

    def find(self, job: Job) -> Optional[TemplateRecord]:
        """Return the record for job, or None if it was never compiled."""
        entry = self._load().get(_key(job))
        if entry is None:
            return None
        record = TemplateRecord(blob_id=entry.get("blob_id", ""), blob_sha1=entry.get("blob_sha1", ""))
        return record if record.is_valid() else None

    def _load(self) -> Dict[str, Dict[str, str]]:
        if not self.index_path.exists():
            return {}
        try:
            return json.loads(self.index_path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise TemplatesRepoError(f"Reading templates index '{self.index_path}': {e}") from e
