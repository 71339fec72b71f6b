"""CPI release installation: package compilation, job install, Cloud binding."""

from bosh_micro.cpi.installer import Installer, new_installer
from bosh_micro.cpi.job_installer import JobInstaller
from bosh_micro.cpi.package_compiler import PackageCompiler, dependency_order

__all__ = [
    "Installer",
    "JobInstaller",
    "PackageCompiler",
    "dependency_order",
    "new_installer",
]
