"""
Error classes for bosh-micro deployments.

These error types enable retry classification at the wire boundaries:
- TransientError: Safe to retry (timeouts, CPI errors flagged ok_to_retry)
- PermanentError: Do not retry (bad manifests, malformed responses)

Error handling contract:
- Errors are exceptions, not values
- Every layer re-raises with its own context prefix and chains the cause
- A CPI logical error still carries the decoded CmdOutput
"""


class BoshMicroError(Exception):
    """Base exception for bosh-micro."""
    pass


class TransientError(BoshMicroError):
    """
    Transient error - safe to retry.

    Examples:
    - CPI subprocess exceeded its timeout
    - Agent HTTP call timed out
    """
    pass


class PermanentError(BoshMicroError):
    """
    Permanent error - do not retry.

    Examples:
    - Request or response could not be (de)serialized
    - Manifest failed validation
    - Agent reported an exception
    """
    pass


class EncodingError(PermanentError):
    """JSON (de)serialization failed on either wire protocol."""
    pass


class TransportError(BoshMicroError):
    """Subprocess launch failure, connection failure or non-200 HTTP status."""
    pass


class CommandTimeoutError(TransportError, TransientError):
    """A CPI subprocess or agent HTTP call exceeded its configured timeout."""
    pass


class CPICommandError(BoshMicroError):
    """
    The CPI executable reported a logical error in its response.

    The decoded CmdOutput is kept on the exception so callers can inspect
    the error type, the retry hint and the partial log without re-issuing
    the call.
    """

    def __init__(self, message: str, output):
        super().__init__(message)
        self.output = output

    @property
    def error_type(self) -> str:
        return self.output.error.type if self.output.error else ""

    @property
    def ok_to_retry(self) -> bool:
        return bool(self.output.error and self.output.error.ok_to_retry)


class AgentResponseError(PermanentError):
    """The agent answered with a non-empty exception."""
    pass


class ValidationError(PermanentError):
    """Manifest, release or stemcell failed validation."""
    pass


class PipelineError(BoshMicroError):
    """A pipeline step (render, compress, upload, persist, install) failed."""
    pass


class DeployError(BoshMicroError):
    """The deploy command failed at one of its stages."""
    pass
