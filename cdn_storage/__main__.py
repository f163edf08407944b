"""Command line entry point for pycdn."""
import argparse
import logging
import sys
from typing import Callable, Optional, Sequence, TextIO

from .base import StorageAdapter
from .credentials import CredentialStore
from .errors import ConfigurationError
from .facade import normalize_service, open_storage
from .formatting import format_bucket, format_object, load_package_info
from .models import OperationResult
from .settings import SettingsStorage

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    info = load_package_info()
    parser = argparse.ArgumentParser(prog="pycdn", description=info.summary)
    parser.add_argument("--version", action="version", version=f"%(prog)s {info.version}".strip())
    parser.add_argument("-s", "--service", help="rackspace, aws, amazon or s3 (defaults to settings)")
    parser.add_argument("--settings", help="path of the JSON settings file")
    parser.add_argument("--credentials", help="path of the JSON credentials file")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("buckets", help="list buckets")

    create = commands.add_parser("create-bucket", help="create a bucket")
    create.add_argument("bucket")
    create.add_argument("--private", action="store_true", help="create the bucket private")

    delete = commands.add_parser("delete-bucket", help="delete a bucket and everything in it")
    delete.add_argument("bucket")

    listing = commands.add_parser("ls", help="list objects in a bucket")
    listing.add_argument("bucket")

    put = commands.add_parser("put", help="upload a local file")
    put.add_argument("path")
    put.add_argument("bucket")

    cat = commands.add_parser("cat", help="print an object's contents")
    cat.add_argument("name")
    cat.add_argument("bucket")

    remove = commands.add_parser("rm", help="delete an object")
    remove.add_argument("name")
    remove.add_argument("bucket")

    visibility = commands.add_parser("is-public", help="check bucket or object visibility")
    visibility.add_argument("bucket")
    visibility.add_argument("name", nargs="?")

    for name in ("make-public", "make-private"):
        command = commands.add_parser(name, help=f"{name.replace('-', ' ')} a bucket")
        command.add_argument("bucket")
    return parser


def run_command(args: argparse.Namespace, storage: StorageAdapter, out: TextIO) -> OperationResult:
    command = args.command
    if command == "buckets":
        result = storage.list_buckets()
        for bucket in result.value:
            print(format_bucket(bucket), file=out)
    elif command == "create-bucket":
        result = storage.create_bucket(args.bucket, public=not args.private)
    elif command == "delete-bucket":
        result = storage.delete_bucket(args.bucket)
    elif command == "ls":
        result = storage.list_objects(args.bucket)
        for obj in result.value:
            print(format_object(obj), file=out)
    elif command == "put":
        result = storage.upload_file(args.path, args.bucket)
        if result:
            print(result.value or "", file=out)
    elif command == "cat":
        result = storage.get_file_contents(args.name, args.bucket)
        if result:
            _write_bytes(out, result.value)
    elif command == "rm":
        result = storage.delete_object(args.name, args.bucket)
    elif command == "is-public":
        result = storage.is_public(args.bucket, args.name)
        if result:
            print("public" if result.value else "private", file=out)
    elif command == "make-public":
        result = storage.make_public(args.bucket)
    elif command == "make-private":
        result = storage.make_private(args.bucket)
    else:  # pragma: no cover - argparse rejects unknown commands
        raise ValueError(f"Unknown command {command}")
    return result


def _write_bytes(out: TextIO, data: bytes) -> None:
    stream = getattr(out, "buffer", None)
    if stream is not None:
        out.flush()
        stream.write(data)
        stream.flush()
    else:
        out.write(data.decode("utf-8", errors="replace"))


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    storage_factory: Callable[..., StorageAdapter] = open_storage,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    out = out or sys.stdout
    err = err or sys.stderr
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = SettingsStorage(args.settings).load()
    try:
        service = normalize_service(args.service or settings.service)
        storage = storage_factory(
            service,
            settings=settings,
            credential_store=CredentialStore(args.credentials),
        )
    except ConfigurationError as exc:
        print(f"pycdn: {exc}", file=err)
        return 2

    result = storage.init()
    if result:
        result = run_command(args, storage, out)
    if not result:
        LOGGER.debug("Command %s failed", args.command, exc_info=result.error)
        print(f"pycdn: {storage.last_error()}", file=err)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
