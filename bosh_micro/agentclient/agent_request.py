"""
Agent request - one JSON RPC-style call over the message-bus endpoint.

Request body: {"method": ..., "arguments": [...], "reply_to": <client uuid>}

Failure classes:
- non-200 status            -> TransportError
- body not decodable        -> EncodingError
- non-empty agent exception -> AgentResponseError
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, List

import requests

from bosh_micro.agentclient.http_client import HTTPClient, redact_url
from bosh_micro.agentclient.responses import Response
from bosh_micro.errors import AgentResponseError, EncodingError, TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentRequestMessage:
    method: str
    arguments: List[Any]
    reply_to: str


class AgentRequest:
    """Sends requests to one agent endpoint with a fixed reply_to id."""

    def __init__(self, endpoint: str, http_client: HTTPClient, uuid: str):
        self.endpoint = endpoint
        self.http_client = http_client
        self.uuid = uuid

    def send(self, method: str, arguments: List[Any], response: Response) -> None:
        """
        Send method to the agent and decode the answer into response.

        Raises:
            EncodingError: Request could not be serialized or the body not decoded
            TransportError: Request failed or the agent answered non-200
            AgentResponseError: The agent answered with an exception
        """
        message = AgentRequestMessage(method=method, arguments=list(arguments), reply_to=self.uuid)
        try:
            body = json.dumps(asdict(message)).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise EncodingError(f"Marshaling agent request: {e}") from e

        try:
            http_response = self.http_client.post(self.endpoint, body)
        except TransportError as e:
            raise type(e)(f"Performing request to agent endpoint '{redact_url(self.endpoint)}': {e}") from e

        with http_response:
            if http_response.status_code != 200:
                raise TransportError(
                    f"Agent responded with non-successful status code: {http_response.status_code}"
                )

            try:
                response_body = http_response.content
            except requests.RequestException as e:
                raise TransportError(f"Reading agent response: {e}") from e

            logger.debug(f"Agent response for '{method}': {response_body!r}")

            try:
                response.unmarshal(response_body)
            except ValueError as e:
                raise EncodingError(f"Unmarshaling agent response: {e}") from e

            exception = response.get_exception()
            if not exception.is_empty():
                raise AgentResponseError(f"Agent responded with error: {exception.message}")
