"""Report generation for scan results.

Generates one line per finding with its offset and reason, followed by
the total count, in plain text, JSON or rich tables.
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .rules import RuleRegistry
from .schemas import Finding, ScanResult


def format_bytes(raw: bytes) -> str:
    """Format raw bytes as space-separated hex pairs."""
    return " ".join(f"{b:02x}" for b in raw)


def format_finding(finding: Finding, source: str | None = None) -> str:
    """Format a finding as a single report line."""
    prefix = f"{source}: " if source else ""
    return f"{prefix}{finding.message} at offset: {finding.offset} ({finding.offset:#x})"


def generate_json_report(result: ScanResult, source: str | None = None) -> str:
    """Generate a JSON report from a scan result.

    Args:
        result: The scan result.
        source: Name of what was scanned, e.g. "a.out:.text".

    Returns:
        JSON string with the full report.
    """
    data: dict[str, Any] = {"source": source}
    data.update(result.to_dict())
    return json.dumps(data, indent=2)


def generate_text_report(result: ScanResult, source: str | None = None) -> str:
    """Generate a plain text report from a scan result.

    Args:
        result: The scan result.
        source: Name of what was scanned.

    Returns:
        Formatted text report.
    """
    lines = []

    for finding in result.findings:
        lines.append(format_finding(finding, source))
        lines.append(f"    {format_bytes(finding.raw_bytes):<32} {finding.text}")

    if not result.completed:
        prefix = f"{source}: " if source else ""
        lines.append(f"{prefix}decode failed at offset: {result.failed_offset}")
        lines.append("scan incomplete")
    else:
        lines.append(f"{result.count} errors")

    return "\n".join(lines)


def print_rich_report(
    result: ScanResult,
    source: str | None = None,
    console: Console | None = None,
) -> None:
    """Print a rich-formatted report to the console.

    Args:
        result: The scan result.
        source: Name of what was scanned.
        console: Console to print to (stdout if None).
    """
    console = console or Console()

    title = f"x86lint: {source}" if source else "x86lint"

    if result.findings:
        table = Table(title=title)
        table.add_column("Offset", justify="right", style="dim")
        table.add_column("Bytes", style="cyan")
        table.add_column("Instruction")
        table.add_column("Rule", style="yellow")
        table.add_column("Reason")

        for finding in result.findings:
            table.add_row(
                f"{finding.offset:#x}",
                format_bytes(finding.raw_bytes),
                finding.text,
                finding.rule_id,
                finding.message,
            )

        console.print(table)

    if result.completed:
        style = "green" if result.count == 0 else "yellow"
        body = (
            f"[bold]{result.count}[/bold] findings in "
            f"{result.instruction_count:,} instructions ({result.byte_length:,} bytes)"
        )
    else:
        style = "red"
        body = (
            f"[bold red]decode failed[/bold red] at offset {result.failed_offset} "
            f"({result.failed_offset:#x}); scan incomplete"
        )

    console.print(Panel.fit(body, title=f"[bold]{title}[/bold]", border_style=style))


def generate_rules_report(registry: RuleRegistry) -> str:
    """List registered rules and whether each is enabled."""
    lines = []
    for rule in registry.get_rules():
        state = "enabled" if registry.is_enabled(rule.name) else "disabled"
        lines.append(f"  {rule.name:<26} {state:<9} {rule.description}")
    return "\n".join(lines)


def generate_summary(results: list[tuple[str, ScanResult]]) -> dict[str, Any]:
    """Aggregate results across several scanned sections.

    Args:
        results: (source, result) pairs.

    Returns:
        Totals per rule and overall; finding_count is None if any scan
        did not complete.
    """
    rule_counts: dict[str, int] = {}
    failed = []
    for source, result in results:
        for finding in result.findings:
            rule_counts[finding.rule_id] = rule_counts.get(finding.rule_id, 0) + 1
        if not result.completed:
            failed.append({"source": source, "offset": result.failed_offset})

    return {
        "scanned": len(results),
        "instruction_count": sum(r.instruction_count for _, r in results),
        "byte_length": sum(r.byte_length for _, r in results),
        "finding_count": None if failed else sum(rule_counts.values()),
        "rule_counts": rule_counts,
        "decode_failures": failed,
    }
