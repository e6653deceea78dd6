"""Helpers turning raw engine reports into per-spec results and summaries."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

from sf_runner.models.config import RunnerConfig
from sf_runner.models.results import (
    RawResult,
    RunResult,
    Screenshot,
    SpecRun,
    SpecStats,
    SpecSummary,
    TestRecord,
)


logger = logging.getLogger(__name__)


def is_success_result(raw: RawResult) -> bool:
    return raw.get("status") == "finished" and isinstance(raw.get("runs"), list)


def normalize_spec_identifier(spec: str) -> str:
    """Match engine-reported paths against claimed identifiers."""
    normalized = spec.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_stats(raw: Mapping[str, Any]) -> SpecStats:
    return SpecStats(
        suites=_as_int(raw.get("suites")),
        tests=_as_int(raw.get("tests")),
        passes=_as_int(raw.get("passes")),
        pending=_as_int(raw.get("pending")),
        skipped=_as_int(raw.get("skipped")),
        failures=_as_int(raw.get("failures")),
        started_at=raw.get("startedAt"),
        ended_at=raw.get("endedAt"),
        duration_ms=_as_float(raw.get("duration")),
    )


def _parse_tests(raw_tests: Iterable[Any]) -> tuple[TestRecord, ...]:
    tests: list[TestRecord] = []
    for entry in raw_tests:
        if not isinstance(entry, Mapping):
            continue
        title = entry.get("title") or ()
        if isinstance(title, str):
            title = (title,)
        tests.append(
            TestRecord(
                title=tuple(str(part) for part in title),
                state=str(entry.get("state") or "unknown"),
                duration_ms=_as_float(entry.get("duration")),
                error=entry.get("displayError"),
            )
        )
    return tuple(tests)


def _parse_screenshots(raw_shots: Iterable[Any]) -> tuple[Screenshot, ...]:
    shots: list[Screenshot] = []
    for index, entry in enumerate(raw_shots, start=1):
        if not isinstance(entry, Mapping) or not entry.get("path"):
            continue
        path = str(entry["path"])
        shots.append(
            Screenshot(
                screenshot_id=str(entry.get("id") or f"screenshot-{index:03d}"),
                name=str(entry.get("name") or path.rsplit("/", 1)[-1]),
                path=path,
                taken_at=entry.get("takenAt"),
            )
        )
    return tuple(shots)


def _parse_spec_run(spec: str, raw: Mapping[str, Any]) -> SpecRun:
    stats_raw = raw.get("stats")
    return SpecRun(
        spec=spec,
        stats=_parse_stats(stats_raw if isinstance(stats_raw, Mapping) else {}),
        tests=_parse_tests(raw.get("tests") or ()),
        screenshots=_parse_screenshots(raw.get("screenshots") or ()),
        video=raw.get("video") or None,
        error=raw.get("error") or None,
    )


def failed_dummy_result(
    specs: Sequence[str], error: str, config: RunnerConfig
) -> RunResult:
    """Result marking every requested spec as failed with the engine error."""
    now = _utcnow_iso()
    runs = {
        spec: SpecRun(
            spec=spec,
            stats=SpecStats(suites=1, failures=1, started_at=now, ended_at=now),
            error=error,
        )
        for spec in specs
    }
    return RunResult(
        runs=runs,
        engine=config.engine.name,
        status="finished",
        started_at=now,
        ended_at=now,
    )


def normalize_raw_result(
    raw: RawResult, specs: Sequence[str], config: RunnerConfig
) -> RunResult:
    """Map an engine report onto the specs that were requested for the batch.

    Runs for specs that were not requested are dropped; requested specs the
    engine did not report stay absent.
    """
    if not is_success_result(raw):
        message = str(raw.get("message") or "Engine run did not finish")
        return failed_dummy_result(specs, message, config)

    requested = {normalize_spec_identifier(spec): spec for spec in specs}
    runs: dict[str, SpecRun] = {}
    for entry in raw["runs"]:
        if not isinstance(entry, Mapping):
            continue
        reported = entry.get("spec")
        if isinstance(reported, Mapping):
            reported = reported.get("relative") or reported.get("name")
        if not reported:
            continue
        spec = requested.get(normalize_spec_identifier(str(reported)))
        if spec is None:
            logger.debug("Ignoring result for unrequested spec %s", reported)
            continue
        runs[spec] = _parse_spec_run(spec, entry)

    return RunResult(
        runs=runs,
        engine=config.engine.name,
        status=str(raw.get("status")),
        started_at=raw.get("startedTestsAt"),
        ended_at=raw.get("endedTestsAt"),
        total_duration_ms=_as_float(raw.get("totalDuration")),
    )


def get_summary_for_spec(spec: str, result: RunResult) -> SpecSummary | None:
    run = result.get(spec)
    if run is None:
        return None
    stats = run.stats
    return SpecSummary(
        spec=spec,
        status=run.status,
        tests=stats.tests,
        passes=stats.passes,
        failures=stats.failures,
        pending=stats.pending,
        skipped=stats.skipped,
        duration_ms=stats.duration_ms,
        error=run.error,
    )


def build_results_payload(spec_run: SpecRun | None, result: RunResult) -> dict[str, Any]:
    """Payload reported to the service for one instance."""
    if spec_run is None:
        return {
            "engine": result.engine,
            "stats": SpecStats(failures=1).to_payload(),
            "tests": [],
            "screenshots": [],
            "hasVideo": False,
            "error": "No result reported by the engine for this spec",
        }
    return {
        "engine": result.engine,
        "stats": spec_run.stats.to_payload(),
        "tests": [test.to_payload() for test in spec_run.tests],
        "screenshots": [shot.to_payload() for shot in spec_run.screenshots],
        "hasVideo": spec_run.video is not None,
        "error": spec_run.error,
    }
