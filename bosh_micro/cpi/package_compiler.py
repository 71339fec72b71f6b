"""
Package compiler - builds release packages for the local CPI install.

Each package's `packaging` script runs under bash in a scratch copy of the
package sources with:
    BOSH_COMPILE_TARGET   the scratch directory
    BOSH_INSTALL_TARGET   <packages_dir>/<name>
    BOSH_PACKAGES_DIR     <packages_dir> (dependencies are already there)

Packages compile one at a time, dependencies first, stopping at the first
failure. A package whose install directory already carries its fingerprint
is skipped.
"""

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Dict, List, Optional

from bosh_micro.errors import PipelineError
from bosh_micro.release.release import Package

logger = logging.getLogger(__name__)

FINGERPRINT_FILENAME = ".fingerprint"
COMPILE_PATH = "/usr/local/bin:/usr/bin:/bin"


def dependency_order(packages: List[Package]) -> List[Package]:
    """
    Order packages so each one follows all of its dependencies.

    Raises:
        PipelineError: A dependency cycle was found
    """
    ordered: List[Package] = []
    state: Dict[str, str] = {}

    def visit(package: Package, path: List[str]) -> None:
        mark = state.get(package.name)
        if mark == "done":
            return
        if mark == "visiting":
            cycle = " -> ".join(path + [package.name])
            raise PipelineError(f"Resolving package dependencies: cycle {cycle}")
        state[package.name] = "visiting"
        for dependency in package.dependencies:
            visit(dependency, path + [package.name])
        state[package.name] = "done"
        ordered.append(package)

    for package in packages:
        visit(package, [])
    return ordered


class PackageCompiler:
    """Compiles packages into packages_dir."""

    def __init__(
        self,
        packages_dir: Path,
        temp_root: Optional[str] = None,
        timeout: Optional[float] = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.packages_dir = Path(packages_dir)
        self.temp_root = temp_root
        self.timeout = timeout
        self._runner = runner

    def compile(self, packages: List[Package]) -> None:
        """
        Raises:
            PipelineError: Wrapping the first failing package's error
        """
        for package in dependency_order(packages):
            self._compile_package(package)

    def is_compiled(self, package: Package) -> bool:
        fingerprint_file = self.packages_dir / package.name / FINGERPRINT_FILENAME
        if not package.fingerprint or not fingerprint_file.exists():
            return False
        return fingerprint_file.read_text().strip() == package.fingerprint

    def _compile_package(self, package: Package) -> None:
        if self.is_compiled(package):
            logger.info(f"Package '{package.name}' already compiled, skipping")
            return

        packaging_script = Path(package.extracted_path) / "packaging"
        if not packaging_script.exists():
            raise PipelineError(f"Compiling package '{package.name}': missing packaging script")

        install_dir = self.packages_dir / package.name
        try:
            shutil.rmtree(install_dir, ignore_errors=True)
            install_dir.mkdir(parents=True)
            compile_dir = tempfile.mkdtemp(prefix=f"bosh-micro-compile-{package.name}-", dir=self.temp_root)
        except OSError as e:
            raise PipelineError(f"Creating compilation directories for package '{package.name}': {e}") from e

        try:
            shutil.copytree(package.extracted_path, compile_dir, dirs_exist_ok=True)
            self._run_packaging(package, compile_dir, install_dir)
            (install_dir / FINGERPRINT_FILENAME).write_text(package.fingerprint)
        except OSError as e:
            raise PipelineError(f"Compiling package '{package.name}': {e}") from e
        finally:
            shutil.rmtree(compile_dir, ignore_errors=True)

        logger.info(f"Compiled package '{package.name}' into {install_dir}")

    def _run_packaging(self, package: Package, compile_dir: str, install_dir: Path) -> None:
        env = {
            "BOSH_COMPILE_TARGET": compile_dir,
            "BOSH_INSTALL_TARGET": str(install_dir),
            "BOSH_PACKAGES_DIR": str(self.packages_dir),
            "PATH": COMPILE_PATH,
        }
        try:
            result = self._runner(
                ["bash", "-x", "packaging"],
                cwd=compile_dir,
                env=env,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise PipelineError(f"Compiling package '{package.name}': timed out after {self.timeout}s") from e

        logger.debug(
            f"Packaging script for '{package.name}' exited {result.returncode}\n"
            f"STDOUT: '{result.stdout}'\nSTDERR: '{result.stderr}'"
        )
        if result.returncode != 0:
            raise PipelineError(
                f"Compiling package '{package.name}': packaging script failed (exit {result.returncode}):\n"
                f"stdout: {result.stdout.strip()}\n"
                f"stderr: {result.stderr.strip()}"
            )
