"""Command line interface for smaug."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Iterable, List, TextIO
import json
import sys

import yaml

from .command_runner import CommandRunner, RecordingCommandRunner, SubprocessCommandRunner
from .config_loader import UserSettings, default_home
from .console import Console
from .dragonruby import DragonRubyRegistry
from .publish import ConfigError, PublishEngine, PublishFailure, PublishOptions, PublishResult


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    arguments, passthrough = _split_passthrough(list(argv))
    parser = ArgumentParser(prog="smaug", description="Publish DragonRuby games")
    parser.add_argument("--home", help="Smaug home directory (defaults to $SMAUG_HOME or ~/.smaug)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    publish_parser = subparsers.add_parser(
        "publish",
        help="Publish the project to Itch.io",
        epilog="Arguments after -- are passed through to dragonruby-publish.",
    )
    publish_parser.add_argument("path", nargs="?", help="Project directory (defaults to the current directory)")
    publish_parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    publish_parser.add_argument("-q", "--quiet", action="store_true", help="Hide the toolchain's output")
    publish_parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    publish_parser.add_argument("--dry-run", action="store_true", help="Print the publish steps without running them")
    publish_parser.add_argument("--timeout", type=float, help="Abort the toolchain after this many seconds")
    publish_parser.add_argument("--dragonruby-dir", help="Directory holding installed DragonRuby versions")

    args = parser.parse_args(arguments)
    args.dragonruby_args = passthrough
    return args


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    home = Path(args.home).expanduser() if args.home else default_home()

    if args.command == "publish":
        return _handle_publish(args, home)
    raise ValueError(f"Unknown command: {args.command}")


def _split_passthrough(argv: List[str]) -> tuple[List[str], List[str]]:
    if "--" not in argv:
        return argv, []
    index = argv.index("--")
    return argv[:index], argv[index + 1 :]


def _console_level(args: Namespace, settings: UserSettings) -> str:
    if args.json or args.quiet:
        return "error"
    if args.verbose:
        return "debug"
    return settings.log_level


def _load_settings(home: Path) -> UserSettings:
    try:
        return UserSettings.load(home)
    except (OSError, ValueError, TypeError, yaml.YAMLError) as exc:
        raise ConfigError(home, exc) from exc


def _handle_publish(args: Namespace, home: Path, *, out: TextIO | None = None) -> int:
    stream = out or sys.stdout
    console = Console(level="error", dry_run=args.dry_run)

    try:
        settings = _load_settings(home)
        console = Console(level=_console_level(args, settings), dry_run=args.dry_run)

        dragonruby_dir = Path(args.dragonruby_dir).expanduser() if args.dragonruby_dir else settings.installs_dir
        runner: CommandRunner
        if args.dry_run:
            runner = RecordingCommandRunner()
        else:
            runner = SubprocessCommandRunner()

        engine = PublishEngine(registry=DragonRubyRegistry(dragonruby_dir), command_runner=runner, console=console)
        options = PublishOptions(
            path=Path(args.path) if args.path else None,
            dragonruby_args=list(getattr(args, "dragonruby_args", None) or []),
            quiet=args.json or args.quiet,
            dry_run=args.dry_run,
            timeout=args.timeout,
        )
        result = engine.run(options)
    except PublishFailure as exc:
        _report(exc, as_json=args.json, stream=stream, console=console)
        return 1

    if isinstance(runner, RecordingCommandRunner):
        for line in runner.iter_formatted():
            # stdout carries only the JSON document in --json mode.
            if args.json:
                console.dry(line)
            else:
                print(line, file=stream)
    _report(result, as_json=args.json, stream=stream, console=console)
    return 0


def _report(outcome: PublishResult | PublishFailure, *, as_json: bool, stream: TextIO, console: Console) -> None:
    if as_json:
        print(json.dumps(outcome.to_dict()), file=stream)
    elif isinstance(outcome, PublishFailure):
        console.error(str(outcome))
    else:
        print(str(outcome), file=stream)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
