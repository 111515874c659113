"""Command-line entry point.

Usage:
    appflake show     [--source DIR] [--build-dir DIR] [--config FILE]
    appflake build    [--platform P ...]
    appflake check    [--platform P ...]
    appflake develop  --platform P
    appflake run      --platform P [-- ARGS...]
"""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from appflake.backends import BACKENDS, get_backend
from appflake.config import FlakeConfig, load_config
from appflake.errors import AppFlakeError
from appflake.flake import Flake, FlakeOutputs

CONFIG_NAME = "appflake.toml"


def _flake_from_args(args: argparse.Namespace) -> Flake:
    source = Path(args.source)
    if args.config:
        config = load_config(args.config)
    elif (source / CONFIG_NAME).exists():
        config = load_config(source / CONFIG_NAME)
    else:
        config = FlakeConfig()
    return Flake(
        source_root=source,
        config=config,
        backend=get_backend(args.backend),
        build_dir=Path(args.build_dir),
    )


def _evaluate(args: argparse.Namespace) -> FlakeOutputs:
    flake = _flake_from_args(args)
    platforms = tuple(args.platform) if args.platform else None
    return flake.evaluate(platforms)


def _report_failures(outputs: FlakeOutputs) -> None:
    for platform, error in outputs.failures.items():
        print(f"{platform}: {error.code}: {error}", file=sys.stderr)


def cmd_show(args: argparse.Namespace) -> int:
    outputs = _evaluate(args)
    print(outputs.to_json(), end="")
    return 0 if outputs.ok else 1


def cmd_build(args: argparse.Namespace) -> int:
    outputs = _evaluate(args)
    for platform, packages in outputs.packages.items():
        print(f"packages.{platform}.default -> {packages['default'].prefix}")
    _report_failures(outputs)
    return 0 if outputs.ok else 1


def cmd_check(args: argparse.Namespace) -> int:
    outputs = _evaluate(args)
    for platform, checks in outputs.checks.items():
        for name, check in sorted(checks.items()):
            print(f"checks.{platform}.{name}: {check.status}")
            if not check.passed and check.diagnostics:
                print(check.diagnostics, file=sys.stderr)
    _report_failures(outputs)
    return 0 if outputs.ok and outputs.checks_passed else 1


def cmd_develop(args: argparse.Namespace) -> int:
    outputs = _evaluate(args)
    _report_failures(outputs)
    for shells in outputs.dev_shells.values():
        print(shells["default"].to_shell(), end="")
    return 0 if outputs.ok else 1


def cmd_run(args: argparse.Namespace) -> int:
    outputs = _evaluate(args)
    if not outputs.ok:
        _report_failures(outputs)
        return 1
    apps = next(iter(outputs.apps.values()))
    program = str(apps["default"].program)
    extra = args.args[1:] if args.args[:1] == ["--"] else args.args
    argv = [program, *extra]
    if args.dry_run:
        print(" ".join(argv))
        return 0
    os.execv(program, argv)
    return 0  # pragma: no cover


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="appflake", description="Multi-platform app build outputs")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser, *, single_platform: bool = False) -> None:
        p.add_argument("--source", default=".", help="Application checkout")
        p.add_argument("--build-dir", default="build", help="Work and cache directory")
        p.add_argument("--config", default=None, help=f"Config file (default: <source>/{CONFIG_NAME})")
        p.add_argument("--backend", default="local", choices=sorted(BACKENDS))
        if single_platform:
            p.add_argument("--platform", action="append", required=True)
        else:
            p.add_argument("--platform", action="append", help="Restrict to platform (repeatable)")

    show_p = sub.add_parser("show", help="Evaluate and print every output as JSON")
    add_common(show_p)
    show_p.set_defaults(func=cmd_show)

    build_p = sub.add_parser("build", help="Build packages")
    add_common(build_p)
    build_p.set_defaults(func=cmd_build)

    check_p = sub.add_parser("check", help="Build and run lint/format checks")
    add_common(check_p)
    check_p.set_defaults(func=cmd_check)

    develop_p = sub.add_parser("develop", help="Print the dev shell environment")
    add_common(develop_p, single_platform=True)
    develop_p.set_defaults(func=cmd_develop)

    run_p = sub.add_parser("run", help="Build and run the application")
    add_common(run_p, single_platform=True)
    run_p.add_argument("--dry-run", action="store_true", help="Print the command instead of running it")
    run_p.add_argument("args", nargs=argparse.REMAINDER)
    run_p.set_defaults(func=cmd_run)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.func(args))
    except AppFlakeError as exc:
        print(f"error: {exc.code}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
