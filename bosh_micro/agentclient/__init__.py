"""Agent request/response protocol over the message-bus HTTP endpoint."""

from bosh_micro.agentclient.agent_client import AgentClient
from bosh_micro.agentclient.agent_request import AgentRequest, AgentRequestMessage
from bosh_micro.agentclient.http_client import HTTPClient
from bosh_micro.agentclient.responses import (
    AgentException,
    AgentState,
    Response,
    SimpleTaskResponse,
    StateResponse,
    TaskResponse,
)

__all__ = [
    "AgentClient",
    "AgentException",
    "AgentRequest",
    "AgentRequestMessage",
    "AgentState",
    "HTTPClient",
    "Response",
    "SimpleTaskResponse",
    "StateResponse",
    "TaskResponse",
]
