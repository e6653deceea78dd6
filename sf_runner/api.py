"""Stable runner API surface."""

from sf_runner.capture import CaptureBuffer, get_capture_buffer
from sf_runner.engine.adapter import CommandEngine, ExecutionAdapter
from sf_runner.engine.claimer import BatchedClaim, ClaimMode, SingleClaim, select_claim_strategy
from sf_runner.engine.orchestrator import BatchOrchestrator, BatchRecord
from sf_runner.engine.runner import RunSummary, run_till_done
from sf_runner.engine.session import RunOutcome, run
from sf_runner.models.config import RunnerConfig, RunParameters
from sf_runner.models.results import RunResult, SpecSummary
from sf_runner.models.run import Batch, ClaimedUnit, Platform, RunMeta
from sf_runner.services.api_client import OrchestrationClient
from sf_runner.services.uploads import UploadDispatcher

__all__ = [
    "Batch",
    "BatchedClaim",
    "BatchOrchestrator",
    "BatchRecord",
    "CaptureBuffer",
    "ClaimedUnit",
    "ClaimMode",
    "CommandEngine",
    "ExecutionAdapter",
    "OrchestrationClient",
    "Platform",
    "RunMeta",
    "RunnerConfig",
    "RunOutcome",
    "RunParameters",
    "RunResult",
    "RunSummary",
    "SingleClaim",
    "SpecSummary",
    "UploadDispatcher",
    "get_capture_buffer",
    "run",
    "run_till_done",
    "select_claim_strategy",
]
