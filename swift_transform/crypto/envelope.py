"""
Envelope encryption of message payloads.

Each payload gets its own 256-bit data encryption key (DEK) and 96-bit IV.
The payload is sealed with AES-256-GCM under the DEK; the DEK is then wrapped
either by a KeyManagementService (KMS mode) or by a local AES-256-GCM key
(local mode, development and tests). DEK buffers are zeroed after use.
"""

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from swift_transform.core.exceptions import EncryptionFailure, InvalidInput, TamperDetected
from swift_transform.core.models import ALGORITHM_AES_256_GCM, LOCAL_KEY_ID, EncryptedData
from swift_transform.crypto.key_service import KeyManagementService
from swift_transform.observability.logger import get_logger
from swift_transform.observability.metrics import MetricsCollector

logger = get_logger(__name__)

KEY_SIZE_BYTES = 32
IV_SIZE_BYTES = 12


def generate_local_key() -> str:
    """Generate a base64 encoded 256-bit key suitable for local mode."""
    return base64.b64encode(AESGCM.generate_key(bit_length=256)).decode("ascii")


def decode_local_key(encoded_key: str) -> bytes:
    """
    Decode a base64 local key.

    Raises:
        EncryptionFailure: If the value is not base64 or not 32 bytes long
    """
    try:
        key = base64.b64decode(encoded_key, validate=True)
    except binascii.Error as e:
        raise EncryptionFailure(f"Local encryption key is not valid base64: {e}") from e
    if len(key) != KEY_SIZE_BYTES:
        raise EncryptionFailure(
            f"Local encryption key must be {KEY_SIZE_BYTES} bytes (256 bits), got {len(key)}"
        )
    return key


def _zero(buffer: bytearray) -> None:
    for i in range(len(buffer)):
        buffer[i] = 0


class EnvelopeEncryptor:
    """
    Encrypts and decrypts single payloads as EncryptedData bundles.

    Safe for concurrent use: every call works on its own DEK and IV.
    """

    def __init__(
        self,
        key_service: KeyManagementService | None = None,
        kms_key_name: str | None = None,
        local_key: bytes | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the encryptor.

        Args:
            key_service: Key service for KMS mode; when None, local mode is used
            kms_key_name: Key name passed to the key service on wrap
            local_key: 32-byte local key; required when key_service is None
            metrics: Optional metrics collector
        """
        if key_service is None and local_key is None:
            raise EncryptionFailure("Either a key management service or a local key is required")
        if local_key is not None and len(local_key) != KEY_SIZE_BYTES:
            raise EncryptionFailure(f"Local encryption key must be {KEY_SIZE_BYTES} bytes")

        self.key_service = key_service
        self.kms_key_name = kms_key_name
        self._local_key = local_key
        self.metrics = metrics

    @classmethod
    def local(cls, encoded_key: str | None = None, metrics: MetricsCollector | None = None) -> "EnvelopeEncryptor":
        """
        Build a local mode encryptor from a base64 key.

        When no key is given a random one is generated; records written with it
        cannot be decrypted by another process.
        """
        if encoded_key:
            key = decode_local_key(encoded_key)
        else:
            logger.warning(
                "No local encryption key configured, generated a random key. "
                "Records written in this process cannot be decrypted after restart."
            )
            key = AESGCM.generate_key(bit_length=256)
        return cls(local_key=key, metrics=metrics)

    @property
    def local_mode(self) -> bool:
        return self.key_service is None

    def encrypt(self, plaintext: str) -> EncryptedData:
        """
        Encrypt one payload under a fresh DEK and IV.

        Args:
            plaintext: Non-empty payload text

        Returns:
            EncryptedData bundle with base64 fields

        Raises:
            InvalidInput: If plaintext is None or empty
            EncryptionFailure: If sealing or key wrapping fails
        """
        if not plaintext:
            raise InvalidInput("Cannot encrypt an empty payload")

        dek = self._new_data_key()
        try:
            iv = os.urandom(IV_SIZE_BYTES)
            ciphertext = AESGCM(dek).encrypt(iv, plaintext.encode("utf-8"), None)
            wrapped_key, key_id = self._wrap(dek)
        except EncryptionFailure:
            self._record("encrypt", "failure")
            raise
        except Exception as e:
            self._record("encrypt", "failure")
            raise EncryptionFailure(f"Encryption failed: {e}") from e
        finally:
            _zero(dek)

        self._record("encrypt", "success")
        return EncryptedData(
            ciphertext=_b64(ciphertext),
            wrapped_key=_b64(wrapped_key),
            iv=_b64(iv),
            algorithm=ALGORITHM_AES_256_GCM,
            key_id=key_id,
        )

    def decrypt(self, bundle: EncryptedData) -> str:
        """
        Decrypt a bundle produced by encrypt().

        Raises:
            InvalidInput: If the bundle is missing ciphertext, wrapped key or IV
            TamperDetected: If authentication fails for the payload or the wrapped key
            EncryptionFailure: For any other decryption problem
        """
        if bundle is None or not bundle.ciphertext or not bundle.wrapped_key or not bundle.iv:
            raise InvalidInput("Encrypted bundle is missing ciphertext, wrapped key or IV")
        if bundle.algorithm != ALGORITHM_AES_256_GCM:
            raise EncryptionFailure(f"Unsupported algorithm: {bundle.algorithm}")

        dek = bytearray()
        try:
            ciphertext = base64.b64decode(bundle.ciphertext, validate=True)
            iv = base64.b64decode(bundle.iv, validate=True)
            wrapped_key = base64.b64decode(bundle.wrapped_key, validate=True)

            dek = bytearray(self._unwrap(wrapped_key, bundle.key_id))
            plaintext = AESGCM(dek).decrypt(iv, ciphertext, None)
        except InvalidTag as e:
            self._record("decrypt", "tamper")
            raise TamperDetected("Authentication failed: encrypted data or key has been altered") from e
        except TamperDetected:
            self._record("decrypt", "tamper")
            raise
        except EncryptionFailure:
            self._record("decrypt", "failure")
            raise
        except ValueError as e:
            # Malformed base64, IV or key length: the stored bundle was altered
            self._record("decrypt", "tamper")
            raise TamperDetected(f"Malformed encrypted bundle: {e}") from e
        except Exception as e:
            self._record("decrypt", "failure")
            raise EncryptionFailure(f"Decryption failed: {e}") from e
        finally:
            _zero(dek)

        self._record("decrypt", "success")
        return plaintext.decode("utf-8")

    def _new_data_key(self) -> bytearray:
        return bytearray(os.urandom(KEY_SIZE_BYTES))

    def _wrap(self, dek: bytearray) -> tuple[bytes, str]:
        if self.key_service is not None:
            return self.key_service.wrap(self.kms_key_name, dek)

        wrap_iv = os.urandom(IV_SIZE_BYTES)
        return wrap_iv + AESGCM(self._local_key).encrypt(wrap_iv, dek, None), LOCAL_KEY_ID

    def _unwrap(self, wrapped_key: bytes, key_id: str | None) -> bytes:
        if key_id == LOCAL_KEY_ID:
            if self._local_key is None:
                raise EncryptionFailure("Record was encrypted with a local key but none is configured")
            if len(wrapped_key) <= IV_SIZE_BYTES:
                raise TamperDetected("Wrapped key is truncated")
            wrap_iv, sealed = wrapped_key[:IV_SIZE_BYTES], wrapped_key[IV_SIZE_BYTES:]
            return AESGCM(self._local_key).decrypt(wrap_iv, sealed, None)

        if self.key_service is None:
            raise EncryptionFailure(f"No key management service configured for key id {key_id}")
        return self.key_service.unwrap(wrapped_key, key_id)

    def _record(self, operation: str, outcome: str) -> None:
        if self.metrics:
            self.metrics.record_encryption(operation, outcome)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
