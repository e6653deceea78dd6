"""Run session: register the run with the service and drive the run loop."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from sf_common.errors import AuthorityError
from sf_runner.capture import CaptureBuffer, get_capture_buffer
from sf_runner.engine.adapter import ExecutionAdapter
from sf_runner.engine.runner import RunSummary, run_till_done
from sf_runner.env import collect_platform
from sf_runner.models.config import RunnerConfig, RunParameters
from sf_runner.models.run import Platform, RunMeta
from sf_runner.services.api_client import OrchestrationClient

logger = logging.getLogger(__name__)


@dataclass
class RunOutcome:
    """What a machine observed for its share of the run."""

    run_id: str
    run_url: str | None
    summary: RunSummary = field(default_factory=dict)

    @property
    def failed_specs(self) -> list[str]:
        return [spec for spec, result in self.summary.items() if result.failed]

    @property
    def exit_code(self) -> int:
        return 1 if self.failed_specs else 0


def build_create_run_payload(
    config: RunnerConfig, params: RunParameters, platform_info: Platform
) -> dict[str, Any]:
    return {
        "projectId": config.project_id,
        "ciBuildId": params.ci_build_id,
        "group": params.group,
        "tags": list(params.tags),
        "specs": list(params.specs),
        "platform": platform_info.to_payload(),
    }


def build_run_meta(response: Mapping[str, Any], platform_info: Platform) -> RunMeta:
    try:
        return RunMeta(
            run_id=str(response["runId"]),
            group_id=str(response["groupId"]),
            machine_id=str(response["machineId"]),
            platform=platform_info,
        )
    except KeyError as exc:
        raise AuthorityError(
            f"Create run response is missing {exc.args[0]!r}",
            context={"response_keys": sorted(response)},
            cause=exc,
        ) from exc


def _log_warnings(response: Mapping[str, Any]) -> None:
    for warning in response.get("warnings") or []:
        message = warning.get("message") if isinstance(warning, Mapping) else warning
        if message:
            logger.warning("Service warning: %s", message)


def run(
    config: RunnerConfig,
    params: RunParameters,
    *,
    api: OrchestrationClient | None = None,
    engine: ExecutionAdapter | None = None,
    capture: CaptureBuffer | None = None,
    environ: Mapping[str, str] | None = None,
) -> RunOutcome:
    """Create (or join) the run and execute specs until none are left."""
    client = api or OrchestrationClient.from_config(config)
    platform_info = collect_platform(config)

    response = client.create_run(build_create_run_payload(config, params, platform_info))
    _log_warnings(response)
    meta = build_run_meta(response, platform_info)
    run_url = response.get("runUrl")
    logger.info("Run %s (machine %s): %s", meta.run_id, meta.machine_id, run_url or "-")

    buffer = capture or get_capture_buffer()
    with buffer:
        summary = run_till_done(
            meta,
            config,
            params,
            api=client,
            engine=engine,
            capture=buffer,
            environ=environ,
        )

    outcome = RunOutcome(run_id=meta.run_id, run_url=run_url, summary=summary)
    logger.info(
        "Run %s finished: %d specs, %d failed",
        meta.run_id,
        len(summary),
        len(outcome.failed_specs),
    )
    return outcome
