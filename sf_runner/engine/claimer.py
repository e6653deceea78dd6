"""Work claiming strategies: one spec per request, or batches of specs."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, Protocol

from sf_runner.env import batched_override_requested, is_managed_environment
from sf_runner.models.config import RunnerConfig, RunParameters
from sf_runner.models.run import Batch, ClaimedUnit, RunMeta

logger = logging.getLogger(__name__)


class ClaimMode(str, Enum):
    SINGLE = "single"
    BATCHED = "batched"


class ClaimApi(Protocol):
    def create_instance(self, meta: RunMeta) -> dict[str, Any]:
        ...

    def create_batched_instances(self, meta: RunMeta, batch_size: int) -> dict[str, Any]:
        ...


class SingleClaim:
    """Claim exactly one spec per request (legacy service mode)."""

    mode = ClaimMode.SINGLE

    def __init__(self, api: ClaimApi) -> None:
        self._api = api

    def claim(self, meta: RunMeta) -> Batch:
        response = self._api.create_instance(meta)
        spec = response.get("spec")
        instance_id = response.get("instanceId")
        units: tuple[ClaimedUnit, ...] = ()
        if spec is not None and instance_id is not None:
            units = (ClaimedUnit(spec=str(spec), instance_id=str(instance_id)),)
        return Batch(
            units=units,
            claimed_count=_count(response, "claimedInstances"),
            total_count=_count(response, "totalInstances"),
        )


class BatchedClaim:
    """Claim up to ``batch_size`` specs per request."""

    mode = ClaimMode.BATCHED

    def __init__(self, api: ClaimApi, batch_size: int) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._api = api
        self.batch_size = batch_size

    def claim(self, meta: RunMeta) -> Batch:
        logger.debug("Claiming batched specs: %d", self.batch_size)
        response = self._api.create_batched_instances(meta, self.batch_size)
        units: list[ClaimedUnit] = []
        for entry in response.get("specs") or []:
            if isinstance(entry, Mapping) and entry.get("spec") and entry.get("instanceId"):
                units.append(
                    ClaimedUnit(spec=str(entry["spec"]), instance_id=str(entry["instanceId"]))
                )
            else:
                logger.warning("Skipping malformed claimed spec entry: %r", entry)
        if len(units) > self.batch_size:
            logger.warning(
                "Service granted %d specs for a batch of %d; ignoring the extra specs",
                len(units),
                self.batch_size,
            )
            units = units[: self.batch_size]
        return Batch(
            units=tuple(units),
            claimed_count=_count(response, "claimedInstances"),
            total_count=_count(response, "totalInstances"),
        )


ClaimStrategy = SingleClaim | BatchedClaim


def select_claim_mode(
    config: RunnerConfig, environ: Mapping[str, str] | None = None
) -> ClaimMode:
    if is_managed_environment(config, environ) or batched_override_requested(config, environ):
        return ClaimMode.BATCHED
    return ClaimMode.SINGLE


def select_claim_strategy(
    api: ClaimApi,
    config: RunnerConfig,
    params: RunParameters,
    environ: Mapping[str, str] | None = None,
) -> ClaimStrategy:
    """Pick the claim strategy once for the whole run."""
    mode = select_claim_mode(config, environ)
    if mode is ClaimMode.BATCHED:
        return BatchedClaim(api, params.resolved_batch_size(config))
    return SingleClaim(api)


def _count(response: Mapping[str, Any], key: str) -> int:
    try:
        return int(response.get(key) or 0)
    except (TypeError, ValueError):
        return 0
