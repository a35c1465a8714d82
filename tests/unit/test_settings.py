"""
Unit tests for pipeline settings loading.
"""

import pytest
import yaml

from swift_transform.config.settings import ENV_DB_PASSWORD, ENV_LOCAL_KEY, PipelineSettings, load_settings
from swift_transform.core.models import TransformationStatus, TransformationType


def clear_env(monkeypatch, name):
    """Remove an environment variable for the test and restore it afterwards"""
    monkeypatch.setenv(name, "unset")
    monkeypatch.delenv(name)


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


class TestLoadSettings:
    """Test YAML and environment driven settings"""

    def test_defaults_without_file(self, monkeypatch):
        clear_env(monkeypatch, ENV_LOCAL_KEY)
        settings = load_settings()

        assert settings.queues.input_queue == "swift/mt103/inbound"
        assert settings.queues.output_queue == "swift/mt202/outbound"
        assert settings.queues.default_transformation == TransformationType.MT103_TO_MT202
        assert settings.retry.enabled is False
        assert settings.encryption.enabled is True
        assert settings.encryption.local_mode is True
        assert settings.storage.backend == "memory"

    def test_yaml_file(self, tmp_path, monkeypatch):
        clear_env(monkeypatch, ENV_LOCAL_KEY)
        config = write_yaml(
            tmp_path / "pipeline.yaml",
            {
                "queues": {"output_queue": "swift/mt103/outbound", "default_transformation": "mt202_to_mt103"},
                "retry": {
                    "enabled": True,
                    "max_attempts": 5,
                    "initial_interval_ms": 250,
                    "retryable_statuses": "TIMEOUT,FAILED",
                },
                "storage": {"backend": "filesystem", "path": str(tmp_path / "records")},
            },
        )

        settings = load_settings(config)

        assert settings.queues.output_queue == "swift/mt103/outbound"
        assert settings.queues.default_transformation == TransformationType.MT202_TO_MT103
        assert settings.retry.enabled is True
        assert settings.retry.max_attempts == 5
        assert settings.retry.initial_interval_ms == 250
        assert settings.retry.retryable_statuses == {TransformationStatus.TIMEOUT, TransformationStatus.FAILED}
        assert settings.storage.backend == "filesystem"

    def test_secrets_from_environment(self, monkeypatch):
        monkeypatch.setenv(ENV_LOCAL_KEY, "env-key")
        monkeypatch.setenv(ENV_DB_PASSWORD, "env-password")

        settings = PipelineSettings.from_dict({})

        assert settings.encryption.local_key == "env-key"
        assert settings.storage.db_password == "env-password"

    def test_file_secret_wins_over_environment(self, monkeypatch):
        monkeypatch.setenv(ENV_LOCAL_KEY, "env-key")
        settings = PipelineSettings.from_dict({"encryption": {"local_key": "file-key"}})
        assert settings.encryption.local_key == "file-key"

    def test_env_file(self, tmp_path, monkeypatch):
        clear_env(monkeypatch, ENV_DB_PASSWORD)
        env_file = tmp_path / "test.env"
        env_file.write_text(f"{ENV_DB_PASSWORD}=from-dotenv\n")

        settings = load_settings(env_file=env_file)

        assert settings.storage.db_password == "from-dotenv"

    def test_secrets_not_in_repr(self, monkeypatch):
        monkeypatch.setenv(ENV_LOCAL_KEY, "super-secret-key")
        settings = PipelineSettings.from_dict({})
        assert "super-secret-key" not in repr(settings)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.yaml")

    def test_non_mapping_file(self, tmp_path):
        config = tmp_path / "list.yaml"
        config.write_text("- one\n- two\n")
        with pytest.raises(ValueError):
            load_settings(config)

    def test_invalid_backend(self, tmp_path):
        config = write_yaml(tmp_path / "bad.yaml", {"storage": {"backend": "s3"}})
        with pytest.raises(ValueError):
            load_settings(config)
