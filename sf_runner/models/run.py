"""Run identity and claim records exchanged with the orchestration service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Platform:
    """Host description reported when creating runs and claiming specs."""

    os_name: str
    os_version: str
    python_version: str
    engine: str
    engine_version: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "osName": self.os_name,
            "osVersion": self.os_version,
            "pythonVersion": self.python_version,
            "engine": self.engine,
            "engineVersion": self.engine_version,
        }


@dataclass(frozen=True)
class RunMeta:
    """Identifies this machine's slice of a run to the service."""

    run_id: str
    group_id: str
    machine_id: str
    platform: Platform

    def to_payload(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "groupId": self.group_id,
            "machineId": self.machine_id,
            "platform": self.platform.to_payload(),
        }


@dataclass(frozen=True)
class ClaimedUnit:
    """A spec assigned to this machine; instance_id is echoed back on upload."""

    spec: str
    instance_id: str


@dataclass(frozen=True)
class Batch:
    """Outcome of one claim request. No units means the run has no more work."""

    units: tuple[ClaimedUnit, ...] = field(default_factory=tuple)
    claimed_count: int = 0
    total_count: int = 0

    @property
    def specs(self) -> list[str]:
        return [unit.spec for unit in self.units]
