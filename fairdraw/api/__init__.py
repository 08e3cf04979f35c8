"""HTTP interface of the draw subsystem."""

from .app import create_app

__all__ = ["create_app"]
