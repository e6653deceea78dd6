"""Claim one batch, run it through the engine and dispatch its uploads."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass

from sf_common.errors import ExecutionError
from sf_runner.capture import CaptureBuffer
from sf_runner.engine.adapter import ExecutionAdapter
from sf_runner.engine.claimer import ClaimStrategy
from sf_runner.models.config import RunnerConfig
from sf_runner.models.results import SpecSummary
from sf_runner.models.run import Batch, RunMeta
from sf_runner.services.results import get_summary_for_spec, normalize_raw_result
from sf_runner.services.uploads import UploadDispatcher, submit_upload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpecOutcome:
    spec: str
    spec_summary: SpecSummary | None


@dataclass(frozen=True)
class BatchRecord:
    """Per-instance outcome of a batch: its summary and its upload handle."""

    summary: SpecOutcome
    upload_task: Future[None]


class BatchOrchestrator:
    """Glue between the claimer, the engine, the normalizer and uploads.

    Only one batch may execute at a time: the engine is a single shared
    resource and the capture buffer snapshot must cover exactly one batch.
    """

    def __init__(
        self,
        *,
        claimer: ClaimStrategy,
        engine: ExecutionAdapter,
        capture: CaptureBuffer,
        dispatcher: UploadDispatcher,
        executor: Executor,
        config: RunnerConfig,
    ) -> None:
        self._claimer = claimer
        self._engine = engine
        self._capture = capture
        self._dispatcher = dispatcher
        self._executor = executor
        self._config = config
        self._in_flight = threading.Lock()

    def run_batch(self, meta: RunMeta) -> list[BatchRecord]:
        """Claim a fresh batch and execute it; an empty list means no more work."""
        return self.execute_batch(self._claimer.claim(meta))

    def execute_batch(self, batch: Batch) -> list[BatchRecord]:
        if not batch.units:
            return []
        if not self._in_flight.acquire(blocking=False):
            raise ExecutionError(
                "Another batch is already executing", context={"specs": batch.specs}
            )
        try:
            return self._execute(batch)
        finally:
            self._in_flight.release()

    def _execute(self, batch: Batch) -> list[BatchRecord]:
        specs = batch.specs
        # Banners belong to the uploaded instance output.
        print(f"Running: {', '.join(specs)} ({batch.claimed_count}/{batch.total_count})", flush=True)

        raw_result = self._engine.run_specs_safe(",".join(specs))
        run_result = normalize_raw_result(raw_result, specs, self._config)

        print("Reporting results and artifacts in background...", flush=True)
        output = self._capture.snapshot_and_reset()

        records: list[BatchRecord] = []
        for unit in batch.units:
            spec_summary = get_summary_for_spec(unit.spec, run_result)
            if spec_summary is None:
                logger.warning('Cannot find run result for spec "%s"', unit.spec)
            task = self._dispatcher.build_upload_task(unit, run_result, output)
            records.append(
                BatchRecord(
                    summary=SpecOutcome(spec=unit.spec, spec_summary=spec_summary),
                    upload_task=submit_upload(self._executor, task, unit.spec),
                )
            )
        return records
