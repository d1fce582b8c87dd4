"""Main application entry point."""

import argparse
import asyncio
import json
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from . import __version__
from .auth import AuthenticationError, GoogleOAuthHandler
from .config import ConfigLoader, ConfigurationError
from .crypto import CipherError, GnuPGCipher
from .storage import GoogleStorageClient, StorageAcl, StoreError
from .sync import PartialRunFailure, SyncAbortedError, SyncEngine, select_transfer
from .utils.logging import get_logger, setup_logging


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

STDIO = ("-", "/dev/stdout", "/dev/stdin")

ACL_HELP = "canned ACL: " + ", ".join(acl.value for acl in StorageAcl) + " (default: private)"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gsdata",
        description="Command-line access to Google Cloud Storage, with directory synchronization.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s oauth2-refresh --client ID --secret SECRET --refresh TOKEN tokens.json
  %(prog)s gs-list --access TOKEN my-bucket
  %(prog)s gs-put --access TOKEN --encrypt alice@example.com my-bucket notes.txt notes.txt
  %(prog)s gs-sync --client ID --secret SECRET --refresh TOKEN --md5sums --purge my-bucket ./photos
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS, help="log verbosity")
    parser.add_argument("--log-format", choices=["console", "json"], help="log rendering")
    parser.add_argument("--log-file", help="also log to this file, rotated")

    commands = parser.add_subparsers(dest="command", required=True)

    refresh = commands.add_parser("oauth2-refresh", help="Refresh OAuth 2.0 tokens.")
    _add_client_arguments(refresh)
    refresh.add_argument("tokens", nargs="?", default="-", help="output file for the token set")

    gslist = commands.add_parser("gs-list", help="List objects in a bucket as JSON.")
    _add_access_arguments(gslist)
    gslist.add_argument("bucket")
    gslist.add_argument("output", nargs="?", default="-")

    gsget = commands.add_parser("gs-get", help="Get an object from a bucket.")
    _add_access_arguments(gsget)
    gsget.add_argument("bucket")
    gsget.add_argument("key")
    gsget.add_argument("output", nargs="?", default="-")
    gsget.add_argument("--decrypt", action="store_true", help="decrypt the object with GnuPG")

    gsput = commands.add_parser("gs-put", help="Put an object into a bucket.")
    _add_access_arguments(gsput)
    gsput.add_argument("bucket")
    gsput.add_argument("key")
    gsput.add_argument("input", nargs="?", default="-")
    gsput.add_argument("acl", nargs="?", default=None, help=ACL_HELP)
    gsput.add_argument("--encrypt", action="append", default=[], metavar="RECIPIENT",
                       help="GnuPG recipient to encrypt for (repeatable)")

    gsdelete = commands.add_parser("gs-delete", help="Delete an object from a bucket.")
    _add_access_arguments(gsdelete)
    gsdelete.add_argument("bucket")
    gsdelete.add_argument("key")

    gshead = commands.add_parser("gs-head", help="Get object metadata as JSON.")
    _add_access_arguments(gshead)
    gshead.add_argument("bucket")
    gshead.add_argument("key")
    gshead.add_argument("output", nargs="?", default="-")

    gssync = commands.add_parser(
        "gs-sync",
        help="Synchronize a directory with a bucket.",
        description=(
            "Upload new and changed files from DIRECTORY to BUCKET. The exclusions file holds "
            "regular expressions, one per line, matched against paths relative to DIRECTORY. "
            "With --md5sums a \".md5sum\" file usable with \"md5sum -c\" is written into DIRECTORY."
        )
    )
    _add_client_arguments(gssync)
    gssync.add_argument("--project", help="Google API project number")
    gssync.add_argument("bucket", nargs="?")
    gssync.add_argument("directory", nargs="?")
    gssync.add_argument("acl", nargs="?", default=None, help=ACL_HELP)
    gssync.add_argument("--encrypt", action="append", default=[], metavar="RECIPIENT",
                        help="GnuPG recipient to encrypt for (repeatable)")
    gssync.add_argument("--exclusions", help="file of regex exclusions")
    gssync.add_argument("--md5sums", action="store_true", default=None,
                        help="write file \".md5sum\" in the directory")
    gssync.add_argument("--purge", action="store_true", default=None,
                        help="purge non-synchronized objects from the bucket")
    gssync.add_argument("--workers", type=int, help="concurrent transfers")
    gssync.add_argument("--config", help="YAML or JSON file with sync options")

    return parser


def _add_client_arguments(parser: argparse.ArgumentParser) -> None:
    # Each value may come from the environment (or a .env file) instead
    for flag, env_var, metavar, help_text in (
        ("--client", "GSDATA_CLIENT_ID", "ID", "OAuth 2.0 client ID"),
        ("--secret", "GSDATA_CLIENT_SECRET", "SECRET", "OAuth 2.0 client secret"),
        ("--refresh", "GSDATA_REFRESH_TOKEN", "TOKEN", "OAuth 2.0 refresh token"),
    ):
        default = os.environ.get(env_var)
        parser.add_argument(
            flag,
            default=default,
            required=default is None,
            metavar=metavar,
            help=f"{help_text} (env: {env_var})"
        )


def _add_access_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--access", required=True, metavar="TOKEN", help="OAuth 2.0 access token")
    parser.add_argument("--project", metavar="ID", help="Google API project number")


def _write_output(path: str, data: bytes) -> None:
    if path in STDIO:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    else:
        Path(path).write_bytes(data)


def _read_input(path: str) -> bytes:
    if path in STDIO:
        return sys.stdin.buffer.read()
    return Path(path).read_bytes()


def _to_json(value) -> bytes:
    return (json.dumps(value, indent=2) + "\n").encode("utf-8")


def parse_acl(name: Optional[str]) -> StorageAcl:
    try:
        return StorageAcl.from_name(name)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


async def refresh_tokens(args) -> int:
    handler = GoogleOAuthHandler(args.client, args.secret, args.refresh)
    await handler.refresh()
    _write_output(args.tokens, _to_json(handler.to_dict()))
    return EXIT_OK


async def object_command(args) -> int:
    """Dispatch the single-object storage commands."""
    async with GoogleStorageClient(project_id=args.project) as store:
        if args.command == "gs-list":
            entries = await store.list_objects(args.bucket, args.access)
            _write_output(args.output, _to_json([entry.to_dict() for entry in entries]))

        elif args.command == "gs-head":
            entry = await store.head_object(args.bucket, args.key, args.access)
            _write_output(args.output, _to_json(entry.to_dict()))

        elif args.command == "gs-get":
            transfer = select_transfer(GnuPGCipher(), decrypt=args.decrypt)
            data = await store.get_object(args.bucket, args.key, args.access)
            _write_output(args.output, await transfer.decode(data))

        elif args.command == "gs-put":
            acl = parse_acl(args.acl)
            transfer = select_transfer(GnuPGCipher(), args.encrypt)
            payload = await transfer.encode(_read_input(args.input))
            await store.put_object(args.bucket, args.key, payload.data, acl, args.access, payload.metadata)

        elif args.command == "gs-delete":
            await store.delete_object(args.bucket, args.key, args.access)

    return EXIT_OK


async def sync_command(args) -> int:
    config = ConfigLoader().load_sync_config(
        file_path=args.config,
        overrides={
            "bucket": args.bucket,
            "directory": args.directory,
            "project_id": args.project,
            "acl": args.acl,
            "recipients": args.encrypt,
            "exclusions_file": args.exclusions,
            "md5sums": args.md5sums,
            "purge": args.purge,
            "max_workers": args.workers,
        }
    )
    credentials = GoogleOAuthHandler(args.client, args.secret, args.refresh)

    async with GoogleStorageClient(project_id=config.project_id) as store:
        engine = SyncEngine(store, credentials, cipher=GnuPGCipher())
        setup_signal_handlers(engine)
        report = await engine.run(config)

    print(
        f"{report.succeeded} succeeded, {report.failed} failed, {report.skipped} skipped",
        file=sys.stderr
    )
    report.raise_for_failures()
    return EXIT_OK


def setup_signal_handlers(engine: SyncEngine):
    """Stop dispatching on the first SIGINT/SIGTERM; a second one interrupts."""
    loop = asyncio.get_running_loop()

    def handler(signum):
        get_logger("main").warning("Received signal, finishing in-flight transfers", signal=signum)
        engine.cancel()
        loop.remove_signal_handler(signum)

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, handler, signum)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support
            pass


async def dispatch(args) -> int:
    if args.command == "oauth2-refresh":
        return await refresh_tokens(args)
    if args.command == "gs-sync":
        return await sync_command(args)
    return await object_command(args)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(log_level=args.log_level, log_format=args.log_format, log_file=args.log_file)
    logger = get_logger("main")

    try:
        return asyncio.run(dispatch(args))
    except PartialRunFailure as e:
        logger.error("Synchronization incomplete", error=str(e))
        return EXIT_FAILURE
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=str(e))
        return EXIT_CONFIG
    except SyncAbortedError as e:
        logger.error("Synchronization aborted", error=str(e))
        return EXIT_CONFIG
    except (StoreError, AuthenticationError, CipherError, OSError) as e:
        logger.error("Command failed", command=args.command, error=str(e))
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
