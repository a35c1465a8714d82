"""
Audit record persistence: object store backends and the encrypted record store.
"""

from .object_store import FileSystemObjectStore, InMemoryObjectStore, ObjectStore
from .postgres_store import PostgresObjectStore
from .record_store import EncryptedRecordStore

__all__ = [
    "EncryptedRecordStore",
    "FileSystemObjectStore",
    "InMemoryObjectStore",
    "ObjectStore",
    "PostgresObjectStore",
]
