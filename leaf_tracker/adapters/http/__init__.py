"""Outbound HTTP adapters: upstream forwarding and offline cache interception."""

from leaf_tracker.adapters.http.offline_transport import (
    OfflineCacheTransport,
    create_offline_client,
    network_fetch,
)
from leaf_tracker.adapters.http.upstream import UpstreamClient

__all__ = [
    "OfflineCacheTransport",
    "UpstreamClient",
    "create_offline_client",
    "network_fetch",
]
