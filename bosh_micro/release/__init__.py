"""Release model, extraction and validation."""

from bosh_micro.release.extractor import ReleaseExtractionError, ReleaseExtractor
from bosh_micro.release.release import Job, Package, Release
from bosh_micro.release.validator import ReleaseValidator

__all__ = [
    "Job",
    "Package",
    "Release",
    "ReleaseExtractionError",
    "ReleaseExtractor",
    "ReleaseValidator",
]
