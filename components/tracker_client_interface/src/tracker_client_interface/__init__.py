from tracker_client_interface.client import (
    ResponseDecodeError,
    TrackerClient,
    TrackerClientError,
    TransportError,
    UnknownApiError,
)
from tracker_client_interface.resource import ResourceApi

__all__ = [
    "ResourceApi",
    "ResponseDecodeError",
    "TrackerClient",
    "TrackerClientError",
    "TransportError",
    "UnknownApiError",
]
