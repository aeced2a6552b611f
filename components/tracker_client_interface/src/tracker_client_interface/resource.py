"""Resource contract - base class for the per-resource sub-clients."""

from __future__ import annotations

from abc import ABC
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

if TYPE_CHECKING:
    from tracker_client_interface.client import TrackerClient


class ResourceApi(ABC):
    """Thin helper that turns resource operations into paths for a TrackerClient.

    Sub-clients only go through the client's public verbs; they never touch
    its configuration or decoding internals.

    Args:
        client: The TrackerClient that executes the requests.
    """

    def __init__(self, client: TrackerClient) -> None:
        self._client = client

    @property
    def client(self) -> TrackerClient:
        """Return the owning client."""
        return self._client

    def _get(self, path: str, params: dict | None = None) -> Any:
        return self._client.get(_with_query(path, params))

    def _post(self, path: str, data: str | bytes | None) -> Any:
        return self._client.post(path, data)

    def _put(self, path: str, data: str | bytes | None) -> Any:
        return self._client.put(path, data)

    def _delete(self, path: str) -> Any:
        return self._client.delete(path)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} url={self._client.get_url()!r}>"


def _with_query(path: str, params: dict | None) -> str:
    #None values are dropped so callers can pass optional filters straight through
    if not params:
        return path
    clean = {k: v for k, v in params.items() if v is not None}
    if not clean:
        return path
    return f"{path}?{urlencode(clean, doseq=True)}"
