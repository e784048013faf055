"""
Item storage.
"""

from contextrank.storage.item_store import InMemoryItemStore, ItemStore

__all__ = ["ItemStore", "InMemoryItemStore"]
