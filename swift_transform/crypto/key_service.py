"""
Key management service capability and an in-process RSA-OAEP implementation.

The pipeline never sees a key encryption key (KEK) directly: it asks a
KeyManagementService to wrap a fresh data key and later to unwrap it.
"""

import threading
from abc import ABC, abstractmethod
from pathlib import Path

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from swift_transform.core.exceptions import EncryptionFailure, TamperDetected
from swift_transform.observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_KEY_NAME = "swift-transform-kek"
RSA_KEY_SIZE = 2048

_OAEP = padding.OAEP(
    mgf=padding.MGF1(algorithm=hashes.SHA256()),
    algorithm=hashes.SHA256(),
    label=None,
)


class KeyManagementService(ABC):
    """Wrap/unwrap capability of a key management service."""

    @abstractmethod
    def wrap(self, key_id: str | None, raw_key: bytes | bytearray) -> tuple[bytes, str]:
        """
        Wrap a raw data key.

        Args:
            key_id: Key name (or versioned id) to wrap with; None for the default key
            raw_key: Data key bytes

        Returns:
            Tuple of (wrapped key bytes, versioned key id used)
        """
        pass

    @abstractmethod
    def unwrap(self, wrapped: bytes, key_id: str | None = None) -> bytes:
        """
        Unwrap a data key.

        Raises:
            TamperDetected: If the wrapped key does not decrypt under the key
            EncryptionFailure: If the key id is unknown
        """
        pass


class RsaOaepKeyService(KeyManagementService):
    """
    In-process key service wrapping data keys with RSA-OAEP (SHA-256).

    Key ids are versioned as "<name>/v<N>". rotate() adds a new version that
    is used for all later wraps; older versions stay available for unwrap.
    """

    def __init__(self, key_name: str = DEFAULT_KEY_NAME, private_key: rsa.RSAPrivateKey | None = None):
        self.key_name = key_name
        self._lock = threading.Lock()
        self._versions: dict[int, rsa.RSAPrivateKey] = {}
        self._current = 0
        self._add_version(private_key or _generate_key())

    @classmethod
    def from_pem(
        cls, pem_data: bytes, key_name: str = DEFAULT_KEY_NAME, password: bytes | None = None
    ) -> "RsaOaepKeyService":
        """Load the first key version from a PEM encoded RSA private key."""
        try:
            private_key = serialization.load_pem_private_key(pem_data, password=password)
        except (ValueError, TypeError) as e:
            raise EncryptionFailure(f"Failed to load RSA private key: {e}") from e
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise EncryptionFailure("PEM key is not an RSA private key")
        return cls(key_name=key_name, private_key=private_key)

    @classmethod
    def from_file(cls, path: str | Path, key_name: str = DEFAULT_KEY_NAME) -> "RsaOaepKeyService":
        return cls.from_pem(Path(path).read_bytes(), key_name=key_name)

    @property
    def current_key_id(self) -> str:
        with self._lock:
            return self._versioned_id(self._current)

    def rotate(self, private_key: rsa.RSAPrivateKey | None = None) -> str:
        """Add a new key version and make it current. Returns the new key id."""
        key_id = self._add_version(private_key or _generate_key())
        logger.info("Key rotated", extra={"key_id": key_id})
        return key_id

    def export_pem(self, version: int | None = None) -> bytes:
        """PEM (PKCS8, unencrypted) of a key version, the current one by default."""
        with self._lock:
            private_key = self._versions[version or self._current]
        return private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def wrap(self, key_id: str | None, raw_key: bytes | bytearray) -> tuple[bytes, str]:
        with self._lock:
            version = self._current
            private_key = self._versions[version]
        if key_id and self._name_of(key_id) != self.key_name:
            raise EncryptionFailure(f"Unknown key: {key_id}")
        wrapped = private_key.public_key().encrypt(bytes(raw_key), _OAEP)
        return wrapped, self._versioned_id(version)

    def unwrap(self, wrapped: bytes, key_id: str | None = None) -> bytes:
        private_key = self._key_for(key_id)
        try:
            return private_key.decrypt(wrapped, _OAEP)
        except ValueError as e:
            raise TamperDetected(f"Wrapped key failed to decrypt under {key_id or self.current_key_id}") from e

    def _add_version(self, private_key: rsa.RSAPrivateKey) -> str:
        with self._lock:
            self._current += 1
            self._versions[self._current] = private_key
            return self._versioned_id(self._current)

    def _key_for(self, key_id: str | None) -> rsa.RSAPrivateKey:
        with self._lock:
            if key_id is None:
                return self._versions[self._current]

            name, _, version = key_id.rpartition("/v")
            if name != self.key_name or not version.isdigit() or int(version) not in self._versions:
                raise EncryptionFailure(f"Unknown key id: {key_id}")
            return self._versions[int(version)]

    def _versioned_id(self, version: int) -> str:
        return f"{self.key_name}/v{version}"

    @staticmethod
    def _name_of(key_id: str) -> str:
        name, sep, version = key_id.rpartition("/v")
        if sep and version.isdigit():
            return name
        return key_id


def _generate_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEY_SIZE)
