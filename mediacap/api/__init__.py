"""HTTP surface of the media capture service."""

from .main import create_app

__all__ = ["create_app"]
