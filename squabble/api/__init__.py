"""HTTP control API."""

from squabble.api.server import create_app

__all__ = ["create_app"]
