"""
Registry server - VM settings lookup used by the agent during bootstrap.

Routes (HTTP basic auth on every route):
  GET    /instances/{instance_id}/settings   -> {"settings": "<raw>", "status": "ok"}
  PUT    /instances/{instance_id}/settings   body is stored as-is
  DELETE /instances/{instance_id}/settings

The server runs under uvicorn on a background thread for the duration of
a deploy; settings live in memory only.
"""

import logging
import secrets
import threading
import time
from typing import Dict, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from bosh_micro.errors import PipelineError

logger = logging.getLogger(__name__)

security = HTTPBasic()


def create_app(username: str, password: str, settings: Optional[Dict[str, str]] = None) -> FastAPI:
    """Build the registry application guarded by the given credentials."""
    store: Dict[str, str] = settings if settings is not None else {}
    app = FastAPI(title="bosh-micro registry")

    def authenticate(credentials: HTTPBasicCredentials = Depends(security)) -> None:
        user_ok = secrets.compare_digest(credentials.username.encode("utf-8"), username.encode("utf-8"))
        pass_ok = secrets.compare_digest(credentials.password.encode("utf-8"), password.encode("utf-8"))
        if not (user_ok and pass_ok):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect username or password",
                headers={"WWW-Authenticate": "Basic"},
            )

    @app.get("/instances/{instance_id}/settings", dependencies=[Depends(authenticate)])
    def get_settings(instance_id: str) -> Dict[str, str]:
        if instance_id not in store:
            raise HTTPException(status_code=404, detail=f"No settings for instance '{instance_id}'")
        return {"settings": store[instance_id], "status": "ok"}

    @app.put("/instances/{instance_id}/settings", dependencies=[Depends(authenticate)])
    async def put_settings(instance_id: str, request: Request) -> Dict[str, str]:
        body = await request.body()
        store[instance_id] = body.decode("utf-8")
        logger.debug(f"Saved registry settings for instance {instance_id}")
        return {"status": "ok"}

    @app.delete("/instances/{instance_id}/settings", dependencies=[Depends(authenticate)])
    def delete_settings(instance_id: str) -> Dict[str, str]:
        store.pop(instance_id, None)
        return {"status": "ok"}

    return app


class Server:
    """A running registry; stop() shuts it down and waits for the thread."""

    def __init__(self, uvicorn_server: uvicorn.Server, thread: threading.Thread):
        self.uvicorn_server = uvicorn_server
        self.thread = thread

    def stop(self, timeout: float = 10) -> None:
        """
        Raises:
            PipelineError: The server thread did not exit within timeout
        """
        self.uvicorn_server.should_exit = True
        self.thread.join(timeout)
        if self.thread.is_alive():
            raise PipelineError(f"Stopping registry server: still running after {timeout}s")
        logger.info("Registry server stopped")


class ServerManager:
    """Starts registry servers."""

    def __init__(self, startup_timeout: float = 10, poll_interval: float = 0.05):
        self.startup_timeout = startup_timeout
        self.poll_interval = poll_interval

    def start(self, username: str, password: str, host: str, port: int) -> Server:
        """
        Start a registry on host:port and wait until it accepts connections.

        Raises:
            PipelineError: The server did not come up
        """
        app = create_app(username, password)
        config = uvicorn.Config(app, host=host, port=port, log_level="warning")
        uvicorn_server = uvicorn.Server(config)
        thread = threading.Thread(target=uvicorn_server.run, name="bosh-micro-registry", daemon=True)
        thread.start()

        deadline = time.monotonic() + self.startup_timeout
        while not uvicorn_server.started:
            if not thread.is_alive():
                raise PipelineError(f"Starting registry server on {host}:{port}: server exited during startup")
            if time.monotonic() > deadline:
                uvicorn_server.should_exit = True
                thread.join(self.startup_timeout)
                raise PipelineError(
                    f"Starting registry server on {host}:{port}: not started after {self.startup_timeout}s"
                )
            time.sleep(self.poll_interval)

        logger.info(f"Registry server listening on {host}:{port}")
        return Server(uvicorn_server, thread)
