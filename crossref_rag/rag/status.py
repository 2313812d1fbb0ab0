from __future__ import annotations

"""Per-collection document counts, health and overall connectivity."""

import asyncio
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping

from crossref_rag.rag.types import CollectionType, ConnectionState, StoreStatus
from crossref_rag.vectorstore.base import CollectionStore

logger = logging.getLogger(__name__)


def _always_connected() -> bool:
    return True


@dataclass
class StoreStatusReporter:
    """Builds a fresh StoreStatus on every call; never raises for a bad store."""
    stores: Mapping[CollectionType, CollectionStore]
    probe: Callable[[], bool] = _always_connected

    def __post_init__(self) -> None:
        self.stores = MappingProxyType(dict(self.stores))

    def _count(self, collection_type: CollectionType, store: CollectionStore) -> int | None:
        """Backend count, then namespace-prefix count; None when both fail."""
        try:
            return int(store.count())
        except Exception as exc:
            logger.info(
                "store_count_fallback",
                extra={"collection": collection_type.value, "detail": type(exc).__name__},
            )
        prefix = collection_type.layout.namespace_prefix
        try:
            return int(store.count_by_prefix(prefix))
        except Exception as exc:
            logger.warning(
                "store_count_failed",
                extra={
                    "collection": collection_type.value,
                    "prefix": prefix,
                    "detail": type(exc).__name__,
                },
            )
            return None

    def _probe_connected(self) -> bool:
        try:
            return bool(self.probe())
        except Exception as exc:
            logger.warning("connectivity_probe_failed", extra={"detail": str(exc)})
            return False

    def status(self) -> StoreStatus:
        counts: dict[CollectionType, int] = {}
        health: dict[CollectionType, bool] = {}
        for collection_type, store in self.stores.items():
            count = self._count(collection_type, store)
            counts[collection_type] = count or 0
            health[collection_type] = count is not None
        connected = self._probe_connected()
        if not connected:
            state = ConnectionState.DISCONNECTED
        elif all(health.values()):
            state = ConnectionState.CONNECTED
        else:
            state = ConnectionState.DEGRADED
        return StoreStatus(document_counts=counts, store_health=health, connection_state=state)

    async def astatus(self) -> StoreStatus:
        """Run status() off the event loop."""
        return await asyncio.to_thread(self.status)
