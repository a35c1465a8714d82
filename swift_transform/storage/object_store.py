"""
Object store capability and local backends.

An object store maps string keys to opaque byte bodies. Backends wrap their
I/O errors in StorageFailure and never retry.
"""

import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from swift_transform.core.exceptions import StorageFailure


class ObjectStore(ABC):
    """Key/value blob storage used by the audit record store."""

    @abstractmethod
    def put(self, key: str, body: bytes) -> None:
        """Create or overwrite the object at key."""
        pass

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Return the object body, or None when absent."""
        pass

    @abstractmethod
    def list(self, prefix: str) -> list[str]:
        """Return keys starting with prefix, in ascending key order."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete the object. Returns whether it existed."""
        pass

    def close(self) -> None:
        """Release backend resources."""


class InMemoryObjectStore(ObjectStore):
    """Process-local store for tests and local runs."""

    def __init__(self):
        self._objects: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def put(self, key: str, body: bytes) -> None:
        with self._lock:
            self._objects[key] = bytes(body)

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._objects.get(key)

    def list(self, prefix: str) -> list[str]:
        with self._lock:
            return sorted(key for key in self._objects if key.startswith(prefix))

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._objects.pop(key, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)


class FileSystemObjectStore(ObjectStore):
    """
    One file per key under a root directory.

    Writes go to a temporary file in the same directory and are moved into
    place with os.replace, so readers never see a partial object.
    """

    TEMP_PREFIX = ".tmp-"

    def __init__(self, root: str | Path):
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageFailure(f"Cannot create storage directory {self.root}: {e}") from e

    def put(self, key: str, body: bytes) -> None:
        path = self._path(key)
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=self.TEMP_PREFIX, dir=self.root)
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(body)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageFailure(f"Failed to write object {key}: {e}") from e

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageFailure(f"Failed to read object {key}: {e}") from e

    def list(self, prefix: str) -> list[str]:
        try:
            names = [
                entry.name
                for entry in self.root.iterdir()
                if entry.is_file()
                and entry.name.startswith(prefix)
                and not entry.name.startswith(self.TEMP_PREFIX)
            ]
        except OSError as e:
            raise StorageFailure(f"Failed to list objects under {self.root}: {e}") from e
        return sorted(names)

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageFailure(f"Failed to delete object {key}: {e}") from e

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key in (".", "..") or key.startswith(self.TEMP_PREFIX):
            raise StorageFailure(f"Invalid object key: {key!r}")
        return self.root / key
