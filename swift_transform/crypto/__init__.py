"""
Envelope encryption of message payloads.
"""

from .envelope import EnvelopeEncryptor, generate_local_key
from .key_service import KeyManagementService, RsaOaepKeyService

__all__ = [
    "EnvelopeEncryptor",
    "KeyManagementService",
    "RsaOaepKeyService",
    "generate_local_key",
]
