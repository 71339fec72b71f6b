"""
Agent response variants.

Every response the agent sends has the shape
    {"value": <method specific>, "exception": {"message": "..."} | absent}

A Response knows how to decode a body into itself and exposes the
exception so AgentRequest can fail generically, independent of the
HTTP status.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class AgentException:
    message: str = ""

    def is_empty(self) -> bool:
        return not self.message


class Response(ABC):
    """Capability every concrete agent response implements."""

    exception: AgentException

    @abstractmethod
    def unmarshal(self, body: bytes) -> None:
        """
        Decode body into this response.

        Raises:
            ValueError: If the body is not a valid response document
        """

    def get_exception(self) -> AgentException:
        return self.exception


def _load(body: bytes) -> Dict[str, Any]:
    data = json.loads(body)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _exception(data: Dict[str, Any]) -> AgentException:
    raw = data.get("exception")
    if not raw:
        return AgentException()
    if isinstance(raw, dict):
        return AgentException(message=str(raw.get("message") or ""))
    return AgentException(message=str(raw))


@dataclass
class SimpleTaskResponse(Response):
    """Synchronous method answering with a plain string (ping, start)."""

    value: str = ""
    exception: AgentException = field(default_factory=AgentException)

    def unmarshal(self, body: bytes) -> None:
        data = _load(body)
        self.exception = _exception(data)
        value = data.get("value")
        self.value = "" if value is None else str(value)


@dataclass
class TaskResponse(Response):
    """
    Asynchronous method (stop, apply, mount_disk, get_task).

    While the task runs the value is {"agent_task_id": ..., "state": "running"};
    once finished it is the task's final value.
    """

    value: Any = None
    exception: AgentException = field(default_factory=AgentException)

    def unmarshal(self, body: bytes) -> None:
        data = _load(body)
        self.exception = _exception(data)
        self.value = data.get("value")

    def task_id(self) -> Optional[str]:
        if isinstance(self.value, dict):
            return self.value.get("agent_task_id")
        return None

    def task_state(self) -> str:
        if isinstance(self.value, dict) and "agent_task_id" in self.value:
            return self.value.get("state", "")
        return "finished"


@dataclass
class AgentState:
    job_state: str = ""


@dataclass
class StateResponse(Response):
    """get_state answer."""

    value: AgentState = field(default_factory=AgentState)
    exception: AgentException = field(default_factory=AgentException)

    def unmarshal(self, body: bytes) -> None:
        data = _load(body)
        self.exception = _exception(data)
        value = data.get("value") or {}
        if not isinstance(value, dict):
            raise ValueError("get_state value must be an object")
        self.value = AgentState(job_state=value.get("job_state", ""))
