"""
Storage Services Package

Provides the audit storage interface and its in-memory implementation.
"""

from src.services.storage.interface import (
    AuditStorageInterface,
    StorageError,
)
from src.services.storage.memory import InMemoryAuditStorage

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    # Exceptions
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
]
