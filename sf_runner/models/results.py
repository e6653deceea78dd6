"""Normalized per-spec results produced after each engine invocation."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping

# Engine report as read from the results file, or a failure record built by
# the execution adapter. Only the result normalizer looks inside it.
RawResult = Dict[str, Any]


@dataclass(frozen=True)
class SpecStats:
    """Counters reported by the engine for one spec."""

    suites: int = 0
    tests: int = 0
    passes: int = 0
    pending: int = 0
    skipped: int = 0
    failures: int = 0
    started_at: str | None = None
    ended_at: str | None = None
    duration_ms: float = 0.0

    def to_payload(self) -> dict[str, Any]:
        return {
            "suites": self.suites,
            "tests": self.tests,
            "passes": self.passes,
            "pending": self.pending,
            "skipped": self.skipped,
            "failures": self.failures,
            "startedAt": self.started_at,
            "endedAt": self.ended_at,
            "duration": self.duration_ms,
        }


@dataclass(frozen=True)
class TestRecord:
    title: tuple[str, ...]
    state: str
    duration_ms: float = 0.0
    error: str | None = None

    __test__ = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "title": list(self.title),
            "state": self.state,
            "duration": self.duration_ms,
            "displayError": self.error,
        }


@dataclass(frozen=True)
class Screenshot:
    screenshot_id: str
    name: str
    path: str
    taken_at: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "screenshotId": self.screenshot_id,
            "name": self.name,
            "takenAt": self.taken_at,
        }


@dataclass(frozen=True)
class SpecRun:
    """Everything the engine reported for a single spec."""

    spec: str
    stats: SpecStats
    tests: tuple[TestRecord, ...] = ()
    screenshots: tuple[Screenshot, ...] = ()
    video: str | None = None
    error: str | None = None

    @property
    def status(self) -> str:
        return "failed" if self.stats.failures or self.error else "passed"


@dataclass(frozen=True)
class RunResult:
    """Canonical result of one batch: spec identifier -> SpecRun."""

    runs: Mapping[str, SpecRun]
    engine: str
    status: str = "finished"
    started_at: str | None = None
    ended_at: str | None = None
    total_duration_ms: float = 0.0

    def get(self, spec: str) -> SpecRun | None:
        return self.runs.get(spec)


@dataclass(frozen=True)
class SpecSummary:
    """Pass/fail/duration summary kept in the run summary for one spec."""

    spec: str
    status: str
    tests: int = 0
    passes: int = 0
    failures: int = 0
    pending: int = 0
    skipped: int = 0
    duration_ms: float = 0.0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status != "passed"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
