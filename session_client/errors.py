"""Errors surfaced by the session core."""

from typing import Optional


class SessionClientError(Exception):
    """Base class for all session core errors."""


class ConfigurationError(SessionClientError):
    """Required connection parameters are absent. Fatal to session start."""


class MissingCredentialError(ConfigurationError):
    """No cached, handed-off or issued credential is available."""

    def __init__(self, message: str = "Missing connection details: no hand-off token and no issuer configured"):
        super().__init__(message)


class CredentialFetchError(SessionClientError):
    """The credential issuer was unreachable or answered with a failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class DispatchError(SessionClientError):
    """Sending the report request over the side channel failed."""
