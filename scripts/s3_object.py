#!/usr/bin/env python3
"""Upload, locate or delete a single object in the configured bucket.

Usage:
  .venv/bin/python scripts/s3_object.py put photo.png --key a1b2.png
  .venv/bin/python scripts/s3_object.py url a1b2.png
  .venv/bin/python scripts/s3_object.py delete a1b2.png

Settings come from ATTACHSTORE_CONFIG (default config/s3.yml, section
ATTACHSTORE_ENV) or, when that file is missing, from S3_* variables.
"""

from __future__ import annotations

import argparse
import mimetypes
import sys
from pathlib import Path
from typing import Sequence

from attachstore.common.logging import setup_logging
from attachstore.domain.models import StoredObject
from attachstore.infra.storage.client import StorageError
from attachstore.services.attachment_store import AttachmentStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage objects in S3 storage")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Log level for attachstore loggers (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    put = sub.add_parser("put", help="Upload a file and print its verified MD5")
    put.add_argument("path", type=Path)
    put.add_argument("--key", default=None, help="Storage key (default: file name)")
    put.add_argument("--name", default=None, help="Display name (default: file name)")
    put.add_argument("--content-type", default=None)
    put.add_argument("--digest", default=None, help="Expected MD5 hex digest")

    url = sub.add_parser("url", help="Print the fetch URL of an object")
    url.add_argument("key")

    delete = sub.add_parser("delete", help="Delete an object if it exists")
    delete.add_argument("key")
    return parser


def run(args: argparse.Namespace, store: AttachmentStore) -> str:
    if args.command == "put":
        path: Path = args.path
        content_type = args.content_type or mimetypes.guess_type(path.name)[0]
        stored_object = StoredObject(
            key=args.key or path.name,
            display_name=args.name or path.name,
            content_type=content_type or "application/octet-stream",
            expected_digest=args.digest,
        )
        with path.open("rb") as fh:
            return store.put(stored_object, fh)
    if args.command == "url":
        return store.url_for(args.key)
    deleted = store.delete(args.key)
    return f"Deleted {args.key}" if deleted else f"{args.key} does not exist"


def main(argv: Sequence[str] | None = None, store: AttachmentStore | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level.upper(), json_output=False)
    try:
        print(run(args, store or AttachmentStore()))
    except (StorageError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
