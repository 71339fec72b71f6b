"""
bosh-micro - single-VM bootstrapper

Installs a CPI release locally, uploads a stemcell and brings up one VM
through the CPI and the in-VM agent. Re-deploys are skipped when the
manifest, CPI release and stemcell are unchanged.
"""

__version__ = "0.1.0"


__all__ = ["UserConfig", "load_config", "get_bosh_micro_home"]

from .config import UserConfig, load_config, get_bosh_micro_home
