"""
Agent client - the agent methods used while bootstrapping a VM.

Synchronous methods (ping, start, get_state) return their value directly.
Asynchronous methods (stop, apply, mount_disk) return a task that is
polled with get_task until it leaves the "running" state.
"""

import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from bosh_micro.agentclient.agent_request import AgentRequest
from bosh_micro.agentclient.http_client import HTTPClient
from bosh_micro.agentclient.responses import AgentState, SimpleTaskResponse, StateResponse, TaskResponse
from bosh_micro.errors import PipelineError

logger = logging.getLogger(__name__)


class AgentClient:
    """Calls agent methods through a single AgentRequest."""

    def __init__(
        self,
        endpoint: str,
        http_client: HTTPClient,
        reply_to: Optional[str] = None,
        task_poll_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            endpoint: mbus URL (the "/agent" path is appended)
            http_client: HTTP client used for every request
            reply_to: Correlation id; a new UUID when omitted
            task_poll_delay: Seconds between get_task polls
            sleep: Sleep function (swapped out in tests)
        """
        self.agent_request = AgentRequest(
            f"{endpoint.rstrip('/')}/agent",
            http_client,
            reply_to or str(uuid.uuid4()),
        )
        self.task_poll_delay = task_poll_delay
        self._sleep = sleep

    def ping(self) -> str:
        response = SimpleTaskResponse()
        self.agent_request.send("ping", [], response)
        return response.value

    def start(self) -> str:
        response = SimpleTaskResponse()
        self.agent_request.send("start", [], response)
        return response.value

    def get_state(self) -> AgentState:
        response = StateResponse()
        self.agent_request.send("get_state", [], response)
        return response.value

    def stop(self) -> Any:
        return self._send_async_task("stop", [])

    def apply(self, spec: Dict[str, Any]) -> Any:
        return self._send_async_task("apply", [spec])

    def mount_disk(self, disk_cid: str) -> Any:
        return self._send_async_task("mount_disk", [disk_cid])

    def _send_async_task(self, method: str, arguments: List[Any]) -> Any:
        response = TaskResponse()
        self.agent_request.send(method, arguments, response)

        task_id = response.task_id()
        if task_id is None:
            return response.value

        while response.task_state() == "running":
            logger.debug(f"Waiting for agent task {task_id} ({method})")
            self._sleep(self.task_poll_delay)
            response = TaskResponse()
            self.agent_request.send("get_task", [task_id], response)

        if response.task_state() != "finished":
            raise PipelineError(
                f"Agent task '{task_id}' for method '{method}' ended in state '{response.task_state()}'"
            )
        return response.value
