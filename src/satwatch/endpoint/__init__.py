"""HTTP/WebSocket control surface for the monitor."""

from satwatch.endpoint.server import create_app, serve

__all__ = ["create_app", "serve"]
