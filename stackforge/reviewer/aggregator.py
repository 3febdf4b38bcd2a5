"""Review aggregation.

Merges the finding sequences produced independently by each specialist into
one report.  Findings with the same ``(location, message)`` are duplicates
regardless of which domain reported them; the survivor keeps the highest
severity and the position of the first emission.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..utils import console as default_console
from .models import Location, ReviewFinding, ReviewReport, Severity

_SEVERITY_STYLE: dict[Severity, str] = {
    Severity.HIGH: "bold red",
    Severity.MED: "yellow",
    Severity.LOW: "dim",
}


def aggregate(finding_sets: Iterable[Sequence[ReviewFinding]]) -> ReviewReport:
    """Concatenate, de-duplicate, group and rank findings.

    Within a domain findings are ordered by severity, then by location
    (file, then line with line-less findings first); the sort is stable, so
    findings that tie keep their emission order.
    """
    survivors: dict[tuple[Location, str], ReviewFinding] = {}
    total_input = 0
    for findings in finding_sets:
        for finding in findings:
            total_input += 1
            current = survivors.get(finding.key)
            if current is None:
                survivors[finding.key] = finding
            elif finding.severity.rank < current.severity.rank:
                # Keep the first emission slot; take the more severe report.
                survivors[finding.key] = finding

    groups: dict[str, list[ReviewFinding]] = {}
    for finding in survivors.values():
        groups.setdefault(finding.domain, []).append(finding)
    for domain, members in groups.items():
        groups[domain] = sorted(members, key=_sort_key)

    counts_by_severity = {severity: 0 for severity in Severity}
    for finding in survivors.values():
        counts_by_severity[finding.severity] += 1

    return ReviewReport(
        groups=groups,
        counts_by_severity=counts_by_severity,
        counts_by_domain={domain: len(members) for domain, members in groups.items()},
        total_input=total_input,
        total_output=len(survivors),
    )


def _sort_key(finding: ReviewFinding) -> tuple[int, str, int, int]:
    line = finding.location.line
    return (
        finding.severity.rank,
        finding.location.file,
        0 if line is None else 1,
        line or 0,
    )


def print_report(report: ReviewReport, console: Console | None = None) -> None:
    """Render *report* with Rich: one table per domain plus a summary panel."""
    out = console or default_console
    if not report.groups:
        out.print(Panel("[bold green]No findings[/bold green]", title="Review"))
        return

    for domain, findings in report.groups.items():
        table = Table(title=f"{domain} ({len(findings)})", show_header=True, header_style="bold cyan")
        table.add_column("Severity", no_wrap=True)
        table.add_column("Location", style="dim")
        table.add_column("Message")
        for finding in findings:
            style = _SEVERITY_STYLE[finding.severity]
            table.add_row(f"[{style}]{finding.severity.value}[/{style}]", str(finding.location), finding.message)
        out.print(table)

    summary = "  ".join(
        f"{severity.value}: {report.counts_by_severity.get(severity, 0)}" for severity in Severity
    )
    status = "[bold green]PASSED[/bold green]" if report.passed else "[bold red]FAILED[/bold red]"
    out.print(Panel(
        f"{status}\n{summary}\n{report.total_output} unique of {report.total_input} reported",
        title="Review Summary",
    ))
