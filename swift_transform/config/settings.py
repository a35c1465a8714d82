"""
Pipeline configuration.

Settings are read from a YAML file, with secrets taken from the environment
(optionally populated from a .env file):

    ENCRYPTION_LOCAL_KEY  base64 256-bit key for local encryption mode
    DB_PASSWORD           PostgreSQL password for the postgres storage backend

Expected YAML format:
```yaml
queues:
  input_queue: swift/mt103/inbound
  output_queue: swift/mt202/outbound
  default_transformation: MT103_TO_MT202

retry:
  enabled: true
  max_attempts: 3
  initial_interval_ms: 1000
  retryable_statuses: TIMEOUT,FAILED,VALIDATION_ERROR

encryption:
  enabled: true
  local_mode: true

storage:
  backend: filesystem
  path: ./data/records
```
"""

import os
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from swift_transform.core.models import TransformationType
from swift_transform.retry.config import RetryConfig

ENV_LOCAL_KEY = "ENCRYPTION_LOCAL_KEY"
ENV_DB_PASSWORD = "DB_PASSWORD"


class EncryptionSettings(BaseModel):
    """
    Attributes:
        enabled: Encrypt payloads before they are persisted
        local_mode: Wrap data keys with a local AES key instead of a key service
        local_key: Base64 256-bit local key (usually from ENCRYPTION_LOCAL_KEY)
        kms_key_name: Key name used with the key service
        kms_private_key_path: PEM file for the in-process RSA key service
    """

    enabled: bool = True
    local_mode: bool = True
    local_key: str | None = Field(None, repr=False)
    kms_key_name: str = "swift-transform-kek"
    kms_private_key_path: str | None = None


class StorageSettings(BaseModel):
    """
    Attributes:
        backend: memory, filesystem or postgres
        path: Root directory for the filesystem backend
        store_results: Persist audit records for every processed message
        db_host, db_port, db_name, db_user, db_password: postgres backend connection
    """

    backend: Literal["memory", "filesystem", "postgres"] = "memory"
    path: str = "./data/records"
    store_results: bool = True
    db_host: str | None = None
    db_port: int | None = None
    db_name: str | None = None
    db_user: str | None = None
    db_password: str | None = Field(None, repr=False)


class QueueSettings(BaseModel):
    input_queue: str = "swift/mt103/inbound"
    output_queue: str = "swift/mt202/outbound"
    default_transformation: TransformationType = TransformationType.MT103_TO_MT202

    @field_validator("default_transformation", mode="before")
    @classmethod
    def normalize_transformation(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class PipelineSettings(BaseModel):
    """Top-level settings for building a TransformationPipeline."""

    queues: QueueSettings = Field(default_factory=QueueSettings)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    encryption: EncryptionSettings = Field(default_factory=EncryptionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    metrics_enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict | None) -> "PipelineSettings":
        settings = cls.model_validate(data or {})
        settings.apply_environment()
        return settings

    def apply_environment(self) -> None:
        """Fill secrets from the environment when they are not set in the file."""
        if not self.encryption.local_key and os.getenv(ENV_LOCAL_KEY):
            self.encryption.local_key = os.getenv(ENV_LOCAL_KEY)
        if not self.storage.db_password and os.getenv(ENV_DB_PASSWORD):
            self.storage.db_password = os.getenv(ENV_DB_PASSWORD)


def load_settings(config_path: str | Path | None = None, env_file: str | Path | None = None) -> PipelineSettings:
    """
    Load pipeline settings.

    Args:
        config_path: YAML file; defaults are used when None
        env_file: .env file to load into the environment before reading secrets

    Returns:
        PipelineSettings

    Raises:
        FileNotFoundError: If config_path does not exist
        ValueError: If the YAML is not a mapping or fails validation
    """
    if env_file is not None:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    data: dict = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        with open(path) as f:
            loaded = yaml.safe_load(f)
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")
        data = loaded or {}

    return PipelineSettings.from_dict(data)
