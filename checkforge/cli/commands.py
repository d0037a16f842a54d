from __future__ import annotations

import argparse
import json
import logging
import sys

from checkforge.config import ConfigError, load_suite
from checkforge.executor import CheckResult, command_checks
from checkforge.health import OK, ParallelHealthCheck

from .args import build_parser


def run_cli(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        _setup_logging(args.verbose)

        match args.command:
            case "run":
                return cmd_run(args)
            case "list":
                return cmd_list(args)
            case _:
                return 2

    except (ConfigError, KeyError) as exc:
        print(str(exc), file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        return 130


def cmd_run(args: argparse.Namespace) -> int:
    result = _run_with(args)
    print(json.dumps(result, indent=2, default=str))
    return 0 if result.get("status") == OK else 1


def cmd_list(args: argparse.Namespace) -> int:
    suite = load_suite(args.config)
    for check_id in suite.checks_ids():
        print(check_id)
    return 0


def _run_with(args: argparse.Namespace) -> CheckResult:
    suite = load_suite(args.config)
    checks = command_checks(suite, args.checks)
    hc = ParallelHealthCheck(
        checks,
        max_procs=suite.max_procs,
        timeout=suite.timeout,
        tempdir=suite.tempdir,
    )
    return hc.check(
        max_procs=args.max_procs,
        timeout=args.timeout,
        tempdir=args.tempdir,
    )


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
