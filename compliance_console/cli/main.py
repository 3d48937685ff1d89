"""Entry point for the command-line interface."""

from __future__ import annotations

import argparse

from compliance_console import i18n
from compliance_console.i18n import _
from compliance_console.log import configure_logging
from compliance_console.settings import AppSettings, load_app_settings

from .commands import COMMANDS

i18n.install(i18n.DOMAIN, i18n.LOCALE_DIR)


def build_parser() -> argparse.ArgumentParser:
    """Construct argument parser for CLI commands."""
    parser = argparse.ArgumentParser(description=_("Compliance console CLI"))
    parser.add_argument(
        "--settings",
        help=_("path to JSON/TOML settings"),
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help=_("use the built-in in-memory service"),
    )
    parser.add_argument(
        "--language",
        choices=["en", "es"],
        help=_("interface language"),
    )
    parser.add_argument(
        "--log-dir",
        help=_("directory for log files"),
    )
    sub = parser.add_subparsers(dest="command", required=True)
    for name, cmd in COMMANDS.items():
        p = sub.add_parser(name, help=cmd.help)
        cmd.add_arguments(p)
        p.set_defaults(func=cmd.func)
    return parser


def resolve_settings(args: argparse.Namespace) -> AppSettings:
    """Return settings from ``--settings`` or the environment plus CLI overrides."""
    if args.settings:
        settings = load_app_settings(args.settings).with_environment()
    else:
        settings = AppSettings.from_environment()
    if args.mock:
        settings.api.use_mocks = True
    if args.language:
        settings.ui.language = args.language
    return settings


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = resolve_settings(args)
    configure_logging(settings.ui.log_level, log_dir=args.log_dir)
    args.app_settings = settings
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
