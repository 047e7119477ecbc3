"""
qBittorrent WebUI API Layer.

This package handles all communication with the control API: the session
store, the authenticator and the retrying client.
"""

from .auth import QbtAuthenticator
from .client import APIResponse, QbtAPIClient
from .session import Session, SessionStore

__all__ = ["APIResponse", "QbtAPIClient", "QbtAuthenticator", "Session", "SessionStore"]
