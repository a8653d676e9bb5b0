"""Remote connection management."""

from src.services.connection.manager import ConnectionManager, StorageFactory

__all__ = ["ConnectionManager", "StorageFactory"]
