"""
Services: orchestration of the ingestion pipeline.
"""

from contextrank.services.indexing_service import IndexingService

__all__ = ["IndexingService"]
