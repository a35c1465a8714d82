from .settings import (
    EncryptionSettings,
    PipelineSettings,
    QueueSettings,
    StorageSettings,
    load_settings,
)

__all__ = [
    "EncryptionSettings",
    "PipelineSettings",
    "QueueSettings",
    "StorageSettings",
    "load_settings",
]
