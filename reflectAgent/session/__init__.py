"""Session management."""

from .manager import SessionManager, SessionNodes, extract_response

__all__ = ["SessionManager", "SessionNodes", "extract_response"]
