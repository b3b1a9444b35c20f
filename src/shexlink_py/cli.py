"""ShEx / LinkML / JSON Schema / SHACL translator: CLI entry point.

Usage:
    shexlink convert --to LANG [--from LANG] FILE [--output FILE]
    shexlink audit --via LANG [--from LANG] FILE

Languages: shex, linkml, jsonschema, shacl. ``--from`` defaults to the
language inferred from the file suffix (.shex, .yaml/.yml, .json, .ttl).

Exit codes:
    convert  0 on success, 2 on any translation error
    audit    0 if the round trip is lossless, 1 if differences were found,
             2 on any translation error
"""
from __future__ import annotations

import argparse
import os
import sys
from typing import Optional

from shexlink_py.config import LOG_LEVELS, get_settings
from shexlink_py.errors import TranslationError
from shexlink_py.logging import bind_context, clear_context, configure_logging, get_logger
from shexlink_py.translate import Language, convert, round_trip

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_DIFFS = 1
EXIT_ERROR = 2

LANGUAGES = [lang.value for lang in Language]


def _read_source(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _source_language(args: argparse.Namespace) -> Language:
    if args.source:
        return Language(args.source)
    return Language.from_path(args.input)


def _fail(message: str) -> int:
    print(f"error: {message}", file=sys.stderr)
    return EXIT_ERROR


def cmd_convert(args: argparse.Namespace) -> int:
    try:
        source_language = _source_language(args)
        result = convert(_read_source(args.input), source_language, args.target)
    except (TranslationError, ValueError, OSError) as e:
        logger.error("convert.failed", error=str(e), error_type=type(e).__name__)
        return _fail(str(e))

    if args.output:
        os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(result)
    else:
        sys.stdout.write(result)
    return EXIT_OK


def cmd_audit(args: argparse.Namespace) -> int:
    try:
        source_language = _source_language(args)
        _, _, report = round_trip(_read_source(args.input), source_language, args.via)
    except (TranslationError, ValueError, OSError) as e:
        logger.error("audit.failed", error=str(e), error_type=type(e).__name__)
        return _fail(str(e))

    print(report.to_json(indent=get_settings().json_indent))
    for diagnostic in report:
        logger.info("audit.diagnostic", diagnostic=str(diagnostic))
    return EXIT_OK if report.is_clean else EXIT_DIFFS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shexlink",
        description="ShEx / LinkML / JSON Schema / SHACL translator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Log level (default: SHEXLINK_LOG_LEVEL or WARNING)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=None,
        help="Emit JSON formatted logs on stderr",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_convert = sub.add_parser("convert", help="Translate a schema to another language")
    p_convert.add_argument("input", metavar="FILE", help="Input schema file")
    p_convert.add_argument("--from", "-f", dest="source", choices=LANGUAGES,
                           help="Source language (default: from file suffix)")
    p_convert.add_argument("--to", "-t", dest="target", choices=LANGUAGES, required=True,
                           help="Target language")
    p_convert.add_argument("--output", "-o", help="Output file path (default: stdout)")
    p_convert.set_defaults(func=cmd_convert)

    p_audit = sub.add_parser("audit", help="Round-trip a schema and report information loss")
    p_audit.add_argument("input", metavar="FILE", help="Input schema file")
    p_audit.add_argument("--from", "-f", dest="source", choices=LANGUAGES,
                         help="Source language (default: from file suffix)")
    p_audit.add_argument("--via", "-v", choices=LANGUAGES, required=True,
                         help="Language to round-trip through")
    p_audit.set_defaults(func=cmd_audit)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ValueError as e:
        return _fail(str(e))
    configure_logging(
        log_level=args.log_level or settings.log_level,
        json_logs=settings.json_logs if args.json_logs is None else args.json_logs,
    )
    bind_context(command=args.command, input=args.input)
    try:
        return args.func(args)
    finally:
        clear_context()


if __name__ == "__main__":
    sys.exit(main())
