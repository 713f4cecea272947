"""``otasync-release``: inspect a release history from the command line."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from .errors import OtaSyncError
from .release_resolver import build_update_response, load_release_history
from .versioning import check_is_mandatory, find_latest_release, should_rollback

LOGGER = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="otasync-release",
        description="Query a release history (JSON or YAML) the way the update client does",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    latest = sub.add_parser("latest", help="Print the newest enabled release")
    latest.add_argument("history", type=Path, help="Release history file")

    mandatory = sub.add_parser(
        "mandatory", help="Print whether a newer mandatory release exists for a runtime version"
    )
    mandatory.add_argument("history", type=Path, help="Release history file")
    mandatory.add_argument("--runtime", required=True, help="Version currently running")

    rollback = sub.add_parser("rollback", help="Print whether the runtime must roll back")
    rollback.add_argument("--runtime", required=True, help="Version currently running")
    rollback.add_argument("--latest", required=True, help="Newest enabled release version")

    check = sub.add_parser("check", help="Print the update-check response for a runtime version")
    check.add_argument("history", type=Path, help="Release history file")
    check.add_argument("--runtime", required=True, help="Label of the running release")
    check.add_argument("--app-version", default="", help="Binary version of the app")
    return parser


def _run(args: argparse.Namespace) -> object:
    if args.command == "rollback":
        return {"rollback": should_rollback(args.runtime, args.latest)}

    history = load_release_history(args.history)
    if args.command == "latest":
        version, entry = find_latest_release(history)
        return {"version": version, **entry.to_dict()}
    if args.command == "mandatory":
        return {"mandatory": check_is_mandatory(args.runtime, history)}
    request = {"app_version": args.app_version or args.runtime, "label": args.runtime}
    return build_update_response(request, history)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point.  Returns the process exit status."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    args = _build_parser().parse_args(argv)
    try:
        result = _run(args)
    except (OtaSyncError, ValueError, OSError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
