"""
NewsQueue Processing Module
==========================

Ingestion cycle orchestration: index listing, deduplicated storage and
subscriber notification.
"""

from .pipeline import IngestionPipeline

__all__ = [
    'IngestionPipeline',
]
