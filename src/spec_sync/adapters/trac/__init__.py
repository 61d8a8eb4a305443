"""Trac tickets backend (XML-RPC)."""

from .adapter import TracAdapter, TracRPCError
from .client import TracClient

__all__ = ["TracAdapter", "TracClient", "TracRPCError"]
