"""
Item indices.

Four independent structures maintained incrementally on ingestion.
"""

from contextrank.index.inverted import InvertedIndex
from contextrank.index.tags import TagIndex
from contextrank.index.metadata import MetadataFilterIndex
from contextrank.index.tenant import TenantIndex
from contextrank.index.index_set import IndexSet, ItemPostings, postings_for

__all__ = [
    "InvertedIndex",
    "TagIndex",
    "MetadataFilterIndex",
    "TenantIndex",
    "IndexSet",
    "ItemPostings",
    "postings_for",
]
