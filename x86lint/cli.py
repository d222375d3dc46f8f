"""CLI for x86lint.

Usage:
    x86lint check <file.o>
    x86lint check <file.o> --section .text --section .init
    x86lint check <code.bin> --raw --format json
    x86lint rules
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .config import OUTPUT_FORMATS, LintConfig
from .elf import executable_sections, extract_sections
from .errors import ConfigError, X86LintError
from .reporter import (
    generate_json_report,
    generate_rules_report,
    generate_summary,
    generate_text_report,
    print_rich_report,
)
from .rules import RuleRegistry, build_registry
from .scanner import scan
from .schemas import ScanResult

logger = logging.getLogger(__name__)

# Exit codes
EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_ERROR = 2


def main(args: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        args: Command line arguments (uses sys.argv if None).

    Returns:
        Exit code: 0 for no findings, 1 if anything was flagged, 2 for
        unreadable input or a decode failure.
    """
    parser = argparse.ArgumentParser(
        prog="x86lint",
        description="Find x86-64 instructions encoded less efficiently than they could be",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Lint the .text section of an object file
    x86lint check foo.o

    # Lint every executable section of a binary
    x86lint check a.out --executable

    # Lint a raw code dump and emit JSON
    x86lint check code.bin --raw --format json > report.json

    # Turn on the mov-zero rule, turn off the lock checks
    x86lint check foo.o --enable mov_zero --disable missing_lock_prefix
""",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Options shared by all commands
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    common.add_argument(
        "--enable",
        action="append",
        default=[],
        metavar="RULE",
        help="Enable a rule (repeatable)",
    )
    common.add_argument(
        "--disable",
        action="append",
        default=[],
        metavar="RULE",
        help="Disable a rule (repeatable)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Check command
    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Lint machine code in object files",
        description="Scan code sections for suboptimal instruction encodings",
    )
    check_parser.add_argument(
        "files",
        nargs="+",
        type=Path,
        help="ELF object(s) to lint, or raw code with --raw",
    )
    check_parser.add_argument(
        "--section",
        "-j",
        action="append",
        dest="sections",
        metavar="NAME",
        help="Section to scan (repeatable, default: .text)",
    )
    check_parser.add_argument(
        "--executable",
        "-x",
        action="store_true",
        help="Scan every executable section",
    )
    check_parser.add_argument(
        "--raw",
        action="store_true",
        help="Treat files as raw machine code rather than ELF",
    )
    check_parser.add_argument(
        "--format",
        "-f",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Output format (default: text)",
    )
    check_parser.add_argument(
        "--summary",
        "-s",
        action="store_true",
        help="Show only an aggregate summary across all files",
    )

    # Rules command
    subparsers.add_parser(
        "rules",
        parents=[common],
        help="List rules",
        description="List registered rules and whether each is enabled",
    )

    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return EXIT_ERROR

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = build_config(parsed)
        registry = build_registry(config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if parsed.command == "rules":
        print(generate_rules_report(registry))
        return EXIT_OK

    if parsed.command == "check":
        return cmd_check(parsed, config, registry)

    return EXIT_OK


def build_config(args: argparse.Namespace) -> LintConfig:
    """Merge command line flags over the environment configuration."""
    config = LintConfig.from_env()

    config.enable.extend(args.enable)
    config.disable.extend(args.disable)

    if getattr(args, "sections", None):
        config.sections = list(args.sections)
    if getattr(args, "executable", False):
        config.executable_sections = True
    if getattr(args, "raw", False):
        config.raw = True
    if getattr(args, "format", None):
        config.output_format = args.format

    return config


def cmd_check(args: argparse.Namespace, config: LintConfig, registry: RuleRegistry) -> int:
    """Handle the check command.

    Args:
        args: Parsed arguments.
        config: Effective configuration.
        registry: Rules to run.

    Returns:
        Exit code.
    """
    all_results: list[tuple[str, ScanResult]] = []

    for filepath in args.files:
        if not filepath.exists():
            print(f"Error: File not found: {filepath}", file=sys.stderr)
            return EXIT_ERROR

        try:
            if config.raw:
                sections = [("", filepath.read_bytes())]
            elif config.executable_sections:
                sections = executable_sections(filepath)
            else:
                sections = extract_sections(filepath, config.sections)
        except (OSError, X86LintError) as e:
            print(f"Error processing {filepath}: {e}", file=sys.stderr)
            return EXIT_ERROR

        for name, code in sections:
            source = f"{filepath}:{name}" if name else str(filepath)
            result = scan(code, registry=registry)
            all_results.append((source, result))

            # Output individual report (unless --summary)
            if not args.summary:
                if config.output_format == "json":
                    print(generate_json_report(result, source))
                elif config.output_format == "rich":
                    print_rich_report(result, source)
                else:
                    print(generate_text_report(result, source))

    if args.summary:
        print_summary(all_results, config.output_format)

    if any(not result.completed for _, result in all_results):
        return EXIT_ERROR
    if any(result.count for _, result in all_results):
        return EXIT_FINDINGS
    return EXIT_OK


def print_summary(results: list[tuple[str, ScanResult]], output_format: str) -> None:
    """Print aggregate summary across all scanned sections.

    Args:
        results: (source, result) pairs.
        output_format: Output format (text, json, rich).
    """
    summary = generate_summary(results)

    if output_format == "json":
        print(json.dumps(summary, indent=2))
        return

    print("=" * 70)
    print("              AGGREGATE SUMMARY")
    print("=" * 70)
    print(f"  Sections scanned:      {summary['scanned']}")
    print(f"  Instructions:          {summary['instruction_count']:,}")
    print(f"  Bytes:                 {summary['byte_length']:,}")

    if summary["rule_counts"]:
        print()
        print("Findings by rule:")
        for rule_id, count in sorted(summary["rule_counts"].items(), key=lambda x: -x[1]):
            print(f"  {rule_id:<30} {count:>5}")

    for failure in summary["decode_failures"]:
        print(f"  decode failed: {failure['source']} at offset {failure['offset']}")

    if summary["finding_count"] is not None:
        print()
        print(f"{summary['finding_count']} errors")
    print("=" * 70)


if __name__ == "__main__":
    sys.exit(main())
