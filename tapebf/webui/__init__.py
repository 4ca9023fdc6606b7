"""HTTP access to the interpreter: one-shot runs and debug sessions."""

from .app import create_app
from .session import SessionStore

__all__ = ["SessionStore", "create_app"]
