"""
Unit tests for the transformation CLI.
"""

import base64
import json

import pytest
import yaml

from swift_transform.cli.transform_cli import main
from swift_transform.config.settings import ENV_LOCAL_KEY
from swift_transform.retry.config import DEFAULT_DEAD_LETTER_QUEUE


@pytest.fixture
def filesystem_config(tmp_path, local_key, monkeypatch):
    """Settings file with a filesystem store shared between CLI invocations"""
    monkeypatch.setenv(ENV_LOCAL_KEY, local_key)
    config = tmp_path / "pipeline.yaml"
    config.write_text(
        yaml.safe_dump({"storage": {"backend": "filesystem", "path": str(tmp_path / "records")}})
    )
    return str(config)


@pytest.fixture
def message_file(tmp_path, mt103_message):
    path = tmp_path / "mt103.txt"
    path.write_text(mt103_message)
    return str(path)


def run(capsys, argv):
    exit_code = main(argv)
    return exit_code, capsys.readouterr().out


class TestCli:
    """Test CLI commands"""

    def test_generate_key(self, capsys):
        exit_code, out = run(capsys, ["generate-key"])

        assert exit_code == 0
        assert len(base64.b64decode(out.strip())) == 32

    def test_transform(self, capsys, message_file):
        exit_code, out = run(capsys, ["transform", "--input", message_file, "--message-id", "MSG-1"])
        output = json.loads(out)

        assert exit_code == 0
        assert output["record"]["status"] == "PARTIAL_SUCCESS"
        assert output["record"]["input_message_id"] == "MSG-1"
        assert output["record"]["input_message"] is None
        assert "input_encryption" not in output["record"]
        assert len(output["published"]) == 1
        assert output["published"][0]["queue_name"] == "swift/mt202/outbound"

    def test_transform_with_type(self, capsys, message_file):
        exit_code, out = run(capsys, ["transform", "--input", message_file, "--type", "normalize_format"])

        assert exit_code == 0
        assert json.loads(out)["record"]["output_message_type"] == "NORMALIZED"

    def test_transform_failure_exit_code(self, capsys, tmp_path, mt103_missing_amount):
        path = tmp_path / "bad.txt"
        path.write_text(mt103_missing_amount)

        exit_code, out = run(capsys, ["transform", "--input", str(path)])

        assert exit_code == 2
        assert json.loads(out)["record"]["status"] == "VALIDATION_ERROR"

    def test_transform_with_retries(self, capsys, tmp_path, mt103_missing_amount):
        config = tmp_path / "retry.yaml"
        config.write_text(
            yaml.safe_dump({"retry": {"enabled": True, "initial_interval_ms": 10, "use_jitter": False}})
        )
        path = tmp_path / "bad.txt"
        path.write_text(mt103_missing_amount)

        exit_code, out = run(
            capsys, ["--config", str(config), "transform", "--input", str(path), "--wait", "5"]
        )
        output = json.loads(out)

        assert exit_code == 2
        assert output["record"]["status"] == "RETRY"
        assert [m["queue_name"] for m in output["published"]] == [DEFAULT_DEAD_LETTER_QUEUE]
        assert output["published"][0]["headers"]["retryAttempts"] == "3"

    def test_record_lifecycle(self, capsys, filesystem_config, message_file, mt103_message):
        """Test transform, show, list and delete against one filesystem store"""
        _, out = run(capsys, ["--config", filesystem_config, "transform", "--input", message_file])
        transformation_id = json.loads(out)["record"]["transformation_id"]

        exit_code, out = run(capsys, ["--config", filesystem_config, "show-record", "--id", transformation_id])
        assert exit_code == 0
        assert json.loads(out)["input_message"] == mt103_message

        exit_code, out = run(capsys, ["--config", filesystem_config, "list-records", "--json"])
        assert exit_code == 0
        assert [r["transformation_id"] for r in json.loads(out)] == [transformation_id]

        exit_code, out = run(capsys, ["--config", filesystem_config, "list-records"])
        assert transformation_id in out

        exit_code, out = run(capsys, ["--config", filesystem_config, "delete-record", "--id", transformation_id])
        assert exit_code == 0

        exit_code, _ = run(capsys, ["--config", filesystem_config, "show-record", "--id", transformation_id])
        assert exit_code == 1

    def test_delete_missing_record(self, capsys, filesystem_config):
        exit_code, _ = run(capsys, ["--config", filesystem_config, "delete-record", "--id", "nope"])
        assert exit_code == 1

    def test_missing_config(self, capsys, tmp_path):
        exit_code, _ = run(capsys, ["--config", str(tmp_path / "missing.yaml"), "generate-key"])
        assert exit_code == 1

    def test_no_command(self, capsys):
        exit_code, _ = run(capsys, [])
        assert exit_code == 1
