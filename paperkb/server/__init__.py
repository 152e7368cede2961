"""
Server - HTTP surface over retrieval and research services

The FastAPI application lives in ``paperkb.server.app``; only the entry
point is re-exported so the ``app`` submodule stays importable by name.
"""

from .app import run_server

__all__ = ["run_server"]
