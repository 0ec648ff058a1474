"""Durable key-value store for the purchase ledger."""

import os

import diskcache


class LedgerStore:
    """
    Single-key string storage on disk.

    The ledger is written as one serialized snapshot per key; there are no
    partial updates. Entries never expire.
    """

    def __init__(self, directory: str | None = None):
        if directory is None:
            directory = os.environ.get("LEDGER_DIR", ".cache/ledger")
        self.directory = directory
        self.cache: diskcache.Cache = diskcache.Cache(directory)

    def get(self, key: str) -> str | None:
        """
        Get the stored string for key.

        Returns:
            Stored string or None if never written
        """
        value = self.cache.get(key)
        if value is None:
            return None
        return str(value)

    def set(self, key: str, value: str) -> None:
        """Replace the stored string for key."""
        self.cache.set(key, value)

    def clear(self) -> None:
        """Clear all stored data."""
        self.cache.clear()

    def close(self) -> None:
        self.cache.close()


# Global instance
ledger_store = LedgerStore()
