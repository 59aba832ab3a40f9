# Copyright (c) Syntropy Systems
"""capping agent: runs load and meters energy on the host under test."""

from .app import create_app

__all__ = ["create_app"]
