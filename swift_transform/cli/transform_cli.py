"""
CLI for running transformations and inspecting the encrypted audit store.

Usage:
    python -m swift_transform.cli.transform_cli transform --input <file|-> [--type MT103_TO_MT202] [options]
    python -m swift_transform.cli.transform_cli show-record --id <transformation_id>
    python -m swift_transform.cli.transform_cli list-records [--limit 20]
    python -m swift_transform.cli.transform_cli delete-record --id <transformation_id>
    python -m swift_transform.cli.transform_cli generate-key

Global options (before the command):
    --config <path>     YAML settings file
    --env-file <path>   .env file with ENCRYPTION_LOCAL_KEY / DB_PASSWORD
"""

import argparse
import json
import sys

from swift_transform.config.settings import PipelineSettings, load_settings
from swift_transform.core.exceptions import PipelineError
from swift_transform.core.models import TransformationRecord, TransformationType
from swift_transform.crypto.envelope import generate_local_key
from swift_transform.messaging.publisher import InMemoryQueuePublisher
from swift_transform.observability.logger import get_logger, log_operation, set_log_level
from swift_transform.pipeline.pipeline import build_encryptor, build_object_store, build_pipeline
from swift_transform.storage.record_store import EncryptedRecordStore

logger = get_logger(__name__)

DISPLAY_EXCLUDE = {"input_encryption", "output_encryption"}


def record_to_display(record: TransformationRecord) -> dict:
    """JSON-ready view of a record without its encryption bundles."""
    return record.model_dump(mode="json", exclude=DISPLAY_EXCLUDE)


def open_record_store(settings: PipelineSettings) -> EncryptedRecordStore:
    return EncryptedRecordStore(build_object_store(settings), build_encryptor(settings))


def read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path) as f:
        return f.read()


def transform_command(args, settings: PipelineSettings) -> int:
    """
    Run one message through the pipeline and print the record and publications.

    Args:
        args: Command line arguments
        settings: Loaded pipeline settings

    Returns:
        Exit code (0 when the final status is a success)
    """
    message = read_input(args.input)
    kind = TransformationType(args.type.upper()) if args.type else None
    publisher = InMemoryQueuePublisher()

    with build_pipeline(settings, publisher=publisher) as pipeline:
        record = pipeline.process(
            message,
            message_id=args.message_id,
            correlation_id=args.correlation_id,
            kind=kind,
        )
        if pipeline.scheduler is not None and args.wait > 0:
            pipeline.scheduler.wait_idle(timeout=args.wait)

        output = {
            "record": record_to_display(record),
            "published": [m.model_dump(mode="json") for m in publisher.messages],
        }

    print(json.dumps(output, indent=2))
    return 0 if record.is_successful() else 2


def show_record_command(args, settings: PipelineSettings) -> int:
    store = open_record_store(settings)
    try:
        record = store.retrieve(args.id)
    finally:
        store.close()

    if record is None:
        print(f"No transformation record found for ID: {args.id}", file=sys.stderr)
        return 1

    print(json.dumps(record_to_display(record), indent=2))
    return 0


def list_records_command(args, settings: PipelineSettings) -> int:
    store = open_record_store(settings)
    try:
        with log_operation("Listing records", logger=logger, limit=args.limit):
            records = store.list(limit=args.limit)
    finally:
        store.close()

    if args.json:
        print(json.dumps([record_to_display(r) for r in records], indent=2))
        return 0

    print(f"\n{'=' * 80}")
    print(f"TRANSFORMATION RECORDS ({len(records)})")
    print(f"{'=' * 80}\n")
    for record in records:
        print(record.summary())
    return 0


def delete_record_command(args, settings: PipelineSettings) -> int:
    store = open_record_store(settings)
    try:
        existed = store.delete(args.id)
    finally:
        store.close()

    if not existed:
        print(f"No transformation record found for ID: {args.id}", file=sys.stderr)
        return 1
    print(f"Deleted transformation record {args.id}")
    return 0


def generate_key_command(args, settings: PipelineSettings) -> int:
    print(generate_local_key())
    return 0


COMMANDS = {
    "transform": transform_command,
    "show-record": show_record_command,
    "list-records": list_records_command,
    "delete-record": delete_record_command,
    "generate-key": generate_key_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SWIFT message transformation pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to YAML settings file (optional)")
    parser.add_argument("--env-file", help="Path to .env file (optional)")
    parser.add_argument("--log-level", default=None, help="Log level (default: LOG_LEVEL env var or INFO)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    transform_parser = subparsers.add_parser("transform", help="Transform one message")
    transform_parser.add_argument("--input", required=True, help="Message file, or - for stdin")
    transform_parser.add_argument(
        "--type",
        choices=[t.value for t in TransformationType],
        type=str.upper,
        help="Transformation type (default: from settings)",
    )
    transform_parser.add_argument("--message-id", help="Inbound message ID (generated when omitted)")
    transform_parser.add_argument("--correlation-id", help="Correlation ID (optional)")
    transform_parser.add_argument(
        "--wait",
        type=float,
        default=0.0,
        help="Seconds to wait for scheduled retries before exiting (default: 0)",
    )

    show_parser = subparsers.add_parser("show-record", help="Show a decrypted transformation record")
    show_parser.add_argument("--id", required=True, help="Transformation ID")

    list_parser = subparsers.add_parser("list-records", help="List transformation records")
    list_parser.add_argument("--limit", type=int, default=20, help="Maximum records to list (default: 20)")
    list_parser.add_argument("--json", action="store_true", help="Print full records as JSON")

    delete_parser = subparsers.add_parser("delete-record", help="Delete a transformation record")
    delete_parser.add_argument("--id", required=True, help="Transformation ID")

    subparsers.add_parser("generate-key", help="Print a new base64 256-bit local encryption key")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the transformation CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.log_level:
        set_log_level(args.log_level)

    try:
        settings = load_settings(args.config, args.env_file)
        return COMMANDS[args.command](args, settings)
    except (PipelineError, FileNotFoundError, ValueError) as e:
        logger.error(f"Command failed: {e}", extra={"command": args.command})
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
