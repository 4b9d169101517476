"""
Ports used by the ingestion core.

The pipeline and the coordinator depend only on these contracts; the default
adapters live in ``newsqueue.ingestion``, ``newsqueue.delivery`` and
``newsqueue.storage``.
"""

from typing import Dict, List, Optional, Protocol

from ..database.models import IndexEntry, SubscriberConfig


class Extractor(Protocol):
    """Source access. Both methods raise ``ExtractionError`` on failure."""

    def list_index(self, source_ref: str) -> List[IndexEntry]:
        ...

    def fetch_detail(self, link: str) -> Dict[str, str]:
        ...


class Notifier(Protocol):
    """Outbound text delivery. Raises ``DeliveryError`` on failure."""

    def notify(self, subscriber_id: str, text: str) -> None:
        ...


class SubscriberDirectory(Protocol):
    """Read access to subscriber configuration."""

    def config_of(self, subscriber_id: str) -> Optional[SubscriberConfig]:
        ...

    def subscribers_of(self, source_ref: str) -> List[str]:
        """Subscribers whose source equals ``source_ref``.

        Lookup only. ``ContentStore.upsert`` matches the same subscribers in
        SQL inside its insert transaction and does not call this.
        """
        ...
