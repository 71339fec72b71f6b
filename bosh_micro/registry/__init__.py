"""Registry HTTP server started for the duration of a deploy."""

from bosh_micro.registry.server import Server, ServerManager, create_app

__all__ = ["Server", "ServerManager", "create_app"]
