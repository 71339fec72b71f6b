"""
CPI command runner - the subprocess boundary to the external CPI executable.

Wire contract (stdin -> stdout, JSON, UTF-8):
    request:  {"method": ..., "arguments": [...], "context": {"director_uuid": ...}}
    response: {"result": ..., "error": {"type", "message", "ok_to_retry"} | null, "log": ...}

The executable runs with an isolated environment: only PATH and the two
BOSH_*_DIR variables are set. The exit code is logged but never used to
decide success; the decoded `error` field is authoritative.
"""

import json
import logging
import subprocess
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from bosh_micro.errors import CommandTimeoutError, CPICommandError, EncodingError, TransportError

logger = logging.getLogger(__name__)

CPI_PATH = "/usr/local/bin:/usr/bin:/bin"


@dataclass(frozen=True)
class CmdContext:
    director_uuid: str


@dataclass(frozen=True)
class CmdInput:
    method: str
    arguments: List[Any]
    context: CmdContext

    def to_json(self) -> bytes:
        return json.dumps(asdict(self)).encode("utf-8")


@dataclass
class CmdError:
    type: str = ""
    message: str = ""
    ok_to_retry: bool = False

    def __str__(self) -> str:
        return "CmdError" + json.dumps(
            {"type": self.type, "message": self.message, "ok_to_retry": self.ok_to_retry}
        )


@dataclass
class CmdOutput:
    result: Any = None
    error: Optional[CmdError] = None
    log: str = ""

    @classmethod
    def from_json(cls, raw: str) -> "CmdOutput":
        """
        Decode a CPI response document.

        Raises:
            ValueError: If the document is not a JSON object of the expected shape
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        error = None
        raw_error = data.get("error")
        if raw_error is not None:
            if not isinstance(raw_error, dict):
                raise ValueError("'error' must be an object")
            error = CmdError(
                type=raw_error.get("type") or "",
                message=raw_error.get("message") or "",
                ok_to_retry=bool(raw_error.get("ok_to_retry", False)),
            )

        return cls(result=data.get("result"), error=error, log=data.get("log") or "")


@dataclass
class CPIJob:
    """Location of an installed CPI job and its package/job directories."""

    job_path: Path
    jobs_dir: Path
    packages_dir: Path

    @property
    def executable_path(self) -> Path:
        return Path(self.job_path) / "bin" / "cpi"

    def env(self) -> Dict[str, str]:
        return {
            "BOSH_PACKAGES_DIR": str(self.packages_dir),
            "BOSH_JOBS_DIR": str(self.jobs_dir),
            "PATH": CPI_PATH,
        }


class CPICmdRunner:
    """
    Runs one CPI method per subprocess invocation.

    The director UUID placed in every request context is fixed at
    construction time (it is the deployment's UUID).
    """

    def __init__(
        self,
        cpi_job: CPIJob,
        deployment_uuid: str,
        timeout: Optional[float] = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.cpi_job = cpi_job
        self.deployment_uuid = deployment_uuid
        self.timeout = timeout
        self._runner = runner

    def run(self, method: str, *args: Any) -> CmdOutput:
        """
        Execute a CPI method.

        Returns:
            The decoded CmdOutput

        Raises:
            EncodingError: Request could not be serialized or stdout was not a valid response
            TransportError: The executable could not be launched
            CommandTimeoutError: The executable did not finish within the timeout
            CPICommandError: The response carried an error (output attached as .output)
        """
        cmd_input = CmdInput(
            method=method,
            arguments=list(args),
            context=CmdContext(director_uuid=self.deployment_uuid),
        )
        try:
            input_bytes = cmd_input.to_json()
        except (TypeError, ValueError) as e:
            raise EncodingError(f"Marshalling external CPI command input {cmd_input!r}: {e}") from e

        cmd_path = str(self.cpi_job.executable_path)
        try:
            completed = self._runner(
                [cmd_path],
                input=input_bytes,
                capture_output=True,
                env=self.cpi_job.env(),
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.debug(
                f"Timed out after {self.timeout}s executing external CPI command '{cmd_path}'\n"
                f"STDIN: '{input_bytes.decode('utf-8')}'"
            )
            raise CommandTimeoutError(
                f"Executing external CPI command: '{cmd_path}': timed out after {self.timeout}s"
            ) from e
        except OSError as e:
            logger.debug(
                f"Failed to start external CPI command '{cmd_path}'\n"
                f"STDIN: '{input_bytes.decode('utf-8')}'"
            )
            raise TransportError(f"Executing external CPI command: '{cmd_path}': {e}") from e

        stdout = _decode(completed.stdout)
        stderr = _decode(completed.stderr)
        logger.debug(
            f"Exit Code {completed.returncode} when executing external CPI command '{cmd_path}'\n"
            f"STDIN: '{input_bytes.decode('utf-8')}'\nSTDOUT: '{stdout}'\nSTDERR: '{stderr}'"
        )

        try:
            cmd_output = CmdOutput.from_json(stdout)
        except ValueError as e:
            raise EncodingError(
                f"Unmarshalling external CPI command output: STDOUT: '{stdout}', STDERR: '{stderr}': {e}"
            ) from e

        logger.debug(cmd_output.log)

        if cmd_output.error is not None:
            raise CPICommandError(
                f"External CPI command for method `{method}' returned an error: {cmd_output.error}",
                cmd_output,
            )

        return cmd_output


def _decode(stream) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream
