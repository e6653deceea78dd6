"""Run loop: claim and execute batches until the service has no more specs."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Dict, Mapping

from sf_runner.capture import CaptureBuffer, get_capture_buffer
from sf_runner.engine.adapter import CommandEngine, ExecutionAdapter
from sf_runner.engine.claimer import select_claim_strategy
from sf_runner.engine.orchestrator import BatchOrchestrator, BatchRecord
from sf_runner.models.config import RunnerConfig, RunParameters
from sf_runner.models.results import SpecSummary
from sf_runner.models.run import RunMeta
from sf_runner.services.api_client import OrchestrationClient
from sf_runner.services.uploads import UploadDispatcher

logger = logging.getLogger(__name__)

RunSummary = Dict[str, SpecSummary]


def run_till_done(
    meta: RunMeta,
    config: RunnerConfig,
    params: RunParameters,
    *,
    api: OrchestrationClient,
    engine: ExecutionAdapter | None = None,
    capture: CaptureBuffer | None = None,
    environ: Mapping[str, str] | None = None,
) -> RunSummary:
    """Execute claimed batches sequentially and return the per-spec summary.

    Uploads run in the background while the next batch is claimed; the
    function returns only after every upload has settled. There is no
    iteration cap and no timeout: the loop ends when a claim yields no specs.
    """
    claimer = select_claim_strategy(api, config, params, environ)
    logger.debug("Claim mode: %s", claimer.mode.value)
    dispatcher = UploadDispatcher(api=api, config=config.uploads)

    summary: RunSummary = {}
    pending: list[Future[None]] = []
    # Leaving the executor block also drains uploads when a claim error escapes.
    with ThreadPoolExecutor(
        max_workers=config.uploads.workers, thread_name_prefix="sf-upload"
    ) as executor:
        orchestrator = BatchOrchestrator(
            claimer=claimer,
            engine=engine or CommandEngine(config.engine),
            capture=capture or get_capture_buffer(),
            dispatcher=dispatcher,
            executor=executor,
            config=config,
        )
        while True:
            records = orchestrator.run_batch(meta)
            if not records:
                logger.debug("No more specs to run. Uploads queue: %d", len(pending))
                break
            _accumulate(records, summary, pending)

        wait(pending)
    return summary


def _accumulate(
    records: list[BatchRecord],
    summary: RunSummary,
    pending: list[Future[None]],
) -> None:
    for record in records:
        if record.summary.spec_summary is not None:
            summary[record.summary.spec] = record.summary.spec_summary
        pending.append(record.upload_task)
