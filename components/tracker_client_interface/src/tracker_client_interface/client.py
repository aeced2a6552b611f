"""Core client contract definitions and error taxonomy."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tracker_client_interface.resource import ResourceApi

__all__ = [
    "TrackerClient",
    "TrackerClientError",
    "TransportError",
    "UnknownApiError",
    "ResponseDecodeError",
]


class TrackerClientError(Exception):
    """Base exception for every error raised by a tracker client."""


class TransportError(TrackerClientError):
    """Raised when the HTTP exchange itself could not be completed.

    DNS failures, refused connections, TLS handshake failures and the like.
    A well-formed HTTP error status is NOT a transport error.

    Args:
        code:    The transport's native error identifier.
        message: The transport's description of the failure.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


class UnknownApiError(TrackerClientError, ValueError):
    """Raised when a sub-client is requested under a name the client does not know."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown api: {name!r}")
        self.name = name


class ResponseDecodeError(TrackerClientError):
    """Raised when a response body claims a format it cannot be parsed as."""


class TrackerClient(ABC):
    """Executes one HTTP request per call against a tracker's REST API."""

    # ------------------------------------------------------------------
    # Verb primitives used by the resource sub-clients
    # ------------------------------------------------------------------
    @abstractmethod
    def get(self, path: str) -> Any:
        """GET a path and decode the response."""
        """Args:
            path: Path appended verbatim to the base URL, query string included

        Returns:
            Structured data for a JSON body, a parsed document for an XML body,
            the raw string otherwise, or True when the body is empty

        Raises:
            TransportError: If the request could not be completed

        """
        raise NotImplementedError

    @abstractmethod
    def post(self, path: str, data: str | bytes | None) -> Any:
        """POST a body to a path."""
        raise NotImplementedError

    @abstractmethod
    def put(self, path: str, data: str | bytes | None) -> Any:
        """PUT a body to a path."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, path: str) -> Any:
        """DELETE a path."""
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @abstractmethod
    def get_url(self) -> str:
        """Return the configured base URL, unmodified."""
        raise NotImplementedError

    @abstractmethod
    def get_response_code(self) -> int | None:
        """Return the status of the last completed request, or None."""
        raise NotImplementedError

    @abstractmethod
    def api(self, name: str) -> ResourceApi:
        """Return the sub-client registered under name."""
        """Notes on usage:
            Implementations must hand back the same instance on repeated calls.

        Raises:
            UnknownApiError: If name is not a known resource

        """
        raise NotImplementedError
