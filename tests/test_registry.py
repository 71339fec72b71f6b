"""Tests for the registry app and server lifecycle."""

import socket

import pytest
import requests
from fastapi.testclient import TestClient

from bosh_micro.errors import PipelineError
from bosh_micro.registry.server import ServerManager, create_app

AUTH = ("reg", "pass")


@pytest.fixture
def client():
    return TestClient(create_app(*AUTH))


class TestRegistryApp:
    def test_put_then_get(self, client):
        put = client.put("/instances/vm-1/settings", content='{"agent_id": "a"}', auth=AUTH)
        get = client.get("/instances/vm-1/settings", auth=AUTH)

        assert put.status_code == 200
        assert get.status_code == 200
        assert get.json() == {"settings": '{"agent_id": "a"}', "status": "ok"}

    def test_unknown_instance(self, client):
        assert client.get("/instances/vm-2/settings", auth=AUTH).status_code == 404

    def test_delete(self, client):
        client.put("/instances/vm-1/settings", content="{}", auth=AUTH)

        assert client.delete("/instances/vm-1/settings", auth=AUTH).status_code == 200
        assert client.get("/instances/vm-1/settings", auth=AUTH).status_code == 404

    def test_requires_credentials(self, client):
        assert client.get("/instances/vm-1/settings").status_code == 401
        assert client.put("/instances/vm-1/settings", content="{}", auth=("reg", "wrong")).status_code == 401


class TestServerManager:
    def test_start_and_stop(self):
        server = ServerManager().start("reg", "pass", "127.0.0.1", 0)
        try:
            port = server.uvicorn_server.servers[0].sockets[0].getsockname()[1]
            response = requests.get(f"http://127.0.0.1:{port}/instances/vm-1/settings", auth=AUTH, timeout=5)
            assert response.status_code == 404
        finally:
            server.stop()

        assert not server.thread.is_alive()

    def test_port_in_use(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen()
            port = sock.getsockname()[1]

            with pytest.raises(PipelineError, match="Starting registry server"):
                ServerManager(startup_timeout=5).start("reg", "pass", "127.0.0.1", port)
