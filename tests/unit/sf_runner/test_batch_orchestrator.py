"""Batch orchestrator behaviour for a single claimed batch."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from unittest.mock import MagicMock

import pytest

from sf_common.errors import ExecutionError
from sf_runner.api import (
    Batch,
    BatchOrchestrator,
    CaptureBuffer,
    ClaimedUnit,
    SingleClaim,
    UploadDispatcher,
)
from tests.helpers.fakes import FakeApi, FakeEngine, passing_report


pytestmark = pytest.mark.unit_runner


def _batch(*specs: str) -> Batch:
    return Batch(
        units=tuple(ClaimedUnit(spec=spec, instance_id=f"inst-{spec}") for spec in specs),
        claimed_count=len(specs),
        total_count=len(specs),
    )


def _orchestrator(api, engine, capture, executor, config) -> BatchOrchestrator:
    return BatchOrchestrator(
        claimer=SingleClaim(api),
        engine=engine,
        capture=capture,
        dispatcher=UploadDispatcher(api=api, config=config.uploads),
        executor=executor,
        config=config,
    )


def test_empty_batch_returns_no_records_without_running(local_config):
    engine = FakeEngine()
    with ThreadPoolExecutor(max_workers=1) as executor:
        orchestrator = _orchestrator(FakeApi(), engine, CaptureBuffer(), executor, local_config)
        assert orchestrator.execute_batch(Batch()) == []
    assert engine.calls == []


def test_one_upload_task_per_unit_in_claim_order(local_config):
    api = FakeApi()
    engine = FakeEngine(report=lambda specs: passing_report(["b"]))
    with ThreadPoolExecutor(max_workers=2) as executor:
        orchestrator = _orchestrator(api, engine, CaptureBuffer(), executor, local_config)
        records = orchestrator.execute_batch(_batch("a", "b", "c"))
        wait([record.upload_task for record in records])

    assert [record.summary.spec for record in records] == ["a", "b", "c"]
    assert [record.summary.spec_summary is not None for record in records] == [False, True, False]
    assert all(record.upload_task.done() for record in records)
    assert all(record.upload_task.exception() is None for record in records)
    assert set(api.stdout) == {"inst-a", "inst-b", "inst-c"}


def test_output_snapshot_is_taken_after_execution_and_reset(local_config):
    api = FakeApi()
    capture = CaptureBuffer()
    engine = FakeEngine(on_run=lambda spec: capture.append(f"ran {spec}\n"))
    with ThreadPoolExecutor(max_workers=1) as executor:
        orchestrator = _orchestrator(api, engine, capture, executor, local_config)
        records = orchestrator.execute_batch(_batch("a", "b"))
        wait([record.upload_task for record in records])

    assert api.stdout["inst-a"] == "ran a,b\n"
    assert api.stdout["inst-b"] == "ran a,b\n"
    assert capture.snapshot() == ""


def test_rejects_overlapping_batch_execution(local_config):
    rejected: list[str] = []
    orchestrator: BatchOrchestrator

    def reenter(spec: str) -> None:
        with pytest.raises(ExecutionError):
            orchestrator.execute_batch(_batch("other"))
        rejected.append(spec)

    with ThreadPoolExecutor(max_workers=1) as executor:
        orchestrator = _orchestrator(
            FakeApi(), FakeEngine(on_run=reenter), CaptureBuffer(), executor, local_config
        )
        orchestrator.execute_batch(_batch("a"))
        # The guard is released once the batch finishes.
        assert orchestrator.execute_batch(_batch("b"))

    assert rejected == ["a"]


def test_run_batch_claims_before_executing(local_config, run_meta):
    claimer = MagicMock()
    claimer.claim.return_value = _batch("a")
    engine = FakeEngine()
    with ThreadPoolExecutor(max_workers=1) as executor:
        orchestrator = BatchOrchestrator(
            claimer=claimer,
            engine=engine,
            capture=CaptureBuffer(),
            dispatcher=UploadDispatcher(api=FakeApi(), config=local_config.uploads),
            executor=executor,
            config=local_config,
        )
        records = orchestrator.run_batch(run_meta)

    claimer.claim.assert_called_once_with(run_meta)
    assert [record.summary.spec for record in records] == ["a"]
    assert engine.calls == ["a"]


def test_banners_are_part_of_uploaded_output(local_config):
    api = FakeApi()
    engine = FakeEngine(on_run=lambda spec: print(f"engine output for {spec}"))
    with ThreadPoolExecutor(max_workers=1) as executor, CaptureBuffer() as capture:
        orchestrator = _orchestrator(api, engine, capture, executor, local_config)
        batch = Batch(units=(ClaimedUnit(spec="a", instance_id="inst-a"),), claimed_count=1, total_count=3)
        records = orchestrator.execute_batch(batch)
        wait([record.upload_task for record in records])

    assert api.stdout["inst-a"] == (
        "Running: a (1/3)\n"
        "engine output for a\n"
        "Reporting results and artifacts in background...\n"
    )
