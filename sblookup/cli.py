from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from pydantic import ValidationError

from .runner import check_stream
from sblookup.safebrowsing.client import SafeBrowser, SafeBrowserConfig, SafeBrowsingError


API_KEY_ENV = "SBLOOKUP_APIKEY"
DB_PATH_ENV = "SBLOOKUP_DB"

DESCRIPTION = """\
sblookup: command-line tool to lookup URLs with Safe Browsing.

Tool reads one URL per line from STDIN and checks every URL against the
Safe Browsing API. The Safe or Unsafe verdict is printed to STDOUT. If an error
occurred, debug information may be printed to STDERR.
"""

EPILOG = """\
Exit codes:
  0     if all URLs were looked up and are safe.
  1     if at least one URL is not safe.
  128   if at least one URL lookup failed.
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sblookup",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-apikey",
        default=os.getenv(API_KEY_ENV, ""),
        help=f"specify your Safe Browsing API key (default: ${API_KEY_ENV})",
    )
    parser.add_argument(
        "-db",
        default=os.getenv(DB_PATH_ENV, ""),
        help="path to the Safe Browsing database. By default persistent storage is disabled.",
    )
    parser.add_argument(
        "-v",
        "-verbose",
        dest="verbose",
        action="store_true",
        help="enable debug logging on STDERR",
    )
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    if not args.apikey:
        print("No -apikey specified", file=sys.stderr)
        return 1

    try:
        config = SafeBrowserConfig(
            api_key=args.apikey,
            db_path=args.db,
            logger=logging.getLogger("sblookup.safebrowsing"),
        )
        client = SafeBrowser(config)
    except ValidationError as exc:
        reason = "; ".join(e["msg"] for e in exc.errors())
        print(f"Unable to initialize Safe Browsing client: {reason}", file=sys.stderr)
        return 1
    except SafeBrowsingError as exc:
        print(f"Unable to initialize Safe Browsing client: {exc}", file=sys.stderr)
        return 1

    with client:
        outcome = check_stream(sys.stdin.buffer, client, sys.stdout, sys.stderr)
    return outcome.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
