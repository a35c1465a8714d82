"""
EncryptedData model: one envelope-encrypted payload bundle.
"""

from pydantic import BaseModel

ALGORITHM_AES_256_GCM = "AES-256-GCM"
LOCAL_KEY_ID = "local-key"


class EncryptedData(BaseModel):
    """
    Everything needed to decrypt one payload, given access to the KEK.

    Immutable once created.

    Attributes:
        ciphertext: Base64 AES-256-GCM ciphertext (authentication tag appended)
        wrapped_key: Base64 data encryption key, wrapped by the KEK
        iv: Base64 96-bit initialization vector used for the payload
        algorithm: Payload algorithm, always "AES-256-GCM"
        key_id: Versioned KMS key id that wrapped the DEK, or "local-key"
    """

    ciphertext: str | None = None
    wrapped_key: str | None = None
    iv: str | None = None
    algorithm: str = ALGORITHM_AES_256_GCM
    key_id: str | None = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "ciphertext": "q83vEjRWeJA...",
                "wrapped_key": "AAECAwQFBgcICQoL...",
                "iv": "3q2+7wABAgMEBQYH",
                "algorithm": "AES-256-GCM",
                "key_id": "local-key",
            }
        }

    def is_local(self) -> bool:
        return self.key_id == LOCAL_KEY_ID
