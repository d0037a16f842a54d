from __future__ import annotations

import argparse


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="checkforge")

    parser.add_argument(
        "--config",
        default="checkforge.yml",
        help="Path to config file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log dispatch details to stderr",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
    )

    # run
    run = subparsers.add_parser("run", help="Run checks")
    run.add_argument(
        "checks",
        nargs="*",
        help="Check ids to run (default: all)",
    )
    run.add_argument(
        "--max-procs",
        type=int,
        default=None,
        help="Maximum number of checks running at once (0 or 1 disables workers)",
    )
    run.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Global timeout in seconds for the whole run",
    )
    run.add_argument(
        "--tempdir",
        default=None,
        help="Directory for worker scratch files",
    )

    # list
    subparsers.add_parser("list", help="List checks")

    return parser
