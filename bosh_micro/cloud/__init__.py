"""CPI subprocess protocol and the Cloud client built on it."""

from bosh_micro.cloud.cloud import Cloud
from bosh_micro.cloud.cpi_cmd_runner import (
    CmdContext,
    CmdError,
    CmdInput,
    CmdOutput,
    CPICmdRunner,
    CPIJob,
)

__all__ = [
    "Cloud",
    "CmdContext",
    "CmdError",
    "CmdInput",
    "CmdOutput",
    "CPICmdRunner",
    "CPIJob",
]
