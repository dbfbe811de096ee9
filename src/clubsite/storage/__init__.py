"""Persisted catalog storage."""

from clubsite.storage.catalog import JsonCatalogStore

__all__ = ["JsonCatalogStore"]
