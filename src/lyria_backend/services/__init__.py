"""Stateful services shared across requests."""

from .session_store import SessionStore

__all__ = ["SessionStore"]
