"""Release validation - structural checks on an extracted release."""

from pathlib import Path
from typing import List

from bosh_micro.errors import ValidationError
from bosh_micro.release.release import Release


class ReleaseValidator:
    """Checks an extracted release is complete enough to install."""

    def validate(self, release: Release) -> None:
        """
        Raises:
            ValidationError: Listing every problem found
        """
        errors: List[str] = []

        if not release.name:
            errors.append("Release name is missing")
        if not release.version:
            errors.append("Release version is missing")
        if not release.jobs:
            errors.append("Release must contain at least one job")

        package_names = {p.name for p in release.packages}
        for package in release.packages:
            for dependency in package.dependency_names:
                if dependency not in package_names:
                    errors.append(f"Package '{package.name}' depends on unknown package '{dependency}'")

        for job in release.jobs:
            for package_name in job.package_names:
                if package_name not in package_names:
                    errors.append(f"Job '{job.name}' requires unknown package '{package_name}'")
            templates_dir = Path(job.extracted_path) / "templates"
            for source in job.templates:
                if not (templates_dir / source).exists():
                    errors.append(f"Job '{job.name}' is missing template '{source}'")

        if errors:
            raise ValidationError(f"Validating release '{release}': " + "; ".join(errors))
