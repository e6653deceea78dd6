"""Presenter for run summaries."""

from __future__ import annotations

from typing import Mapping

from rich.table import Table

from sf_runner.api import SpecSummary


def _format_duration(duration_ms: float) -> str:
    seconds = duration_ms / 1000.0
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, rem = divmod(int(seconds), 60)
    return f"{minutes}m {rem:02d}s"


def build_summary_rows(
    summary: Mapping[str, SpecSummary],
) -> tuple[list[str], list[list[str]]]:
    """Return column headers and one row per spec plus a totals row."""
    columns = ["Spec", "Status", "Tests", "Passing", "Failing", "Pending", "Skipped", "Duration"]
    rows: list[list[str]] = []
    totals = [0, 0, 0, 0, 0]
    duration = 0.0
    for spec, result in summary.items():
        rows.append(
            [
                spec,
                result.status,
                str(result.tests),
                str(result.passes),
                str(result.failures),
                str(result.pending),
                str(result.skipped),
                _format_duration(result.duration_ms),
            ]
        )
        for index, value in enumerate(
            (result.tests, result.passes, result.failures, result.pending, result.skipped)
        ):
            totals[index] += value
        duration += result.duration_ms
    if rows:
        failed = sum(1 for result in summary.values() if result.failed)
        rows.append(
            [
                f"{len(rows)} specs",
                f"{failed} failed" if failed else "passed",
                *[str(value) for value in totals],
                _format_duration(duration),
            ]
        )
    return columns, rows


def build_summary_table(summary: Mapping[str, SpecSummary]) -> Table:
    columns, rows = build_summary_rows(summary)
    table = Table(
        title="[b]Run summary[/b]",
        header_style="bold white",
        row_styles=("", "dim"),
    )
    for column in columns:
        table.add_column(column, overflow="fold")
    for row in rows:
        style = "red" if row[1].endswith("failed") else None
        table.add_row(*row, style=style)
    return table
