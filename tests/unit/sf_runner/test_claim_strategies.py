"""Claim mode selection and the two claim strategies."""

from __future__ import annotations

import logging

import pytest

from sf_runner.api import BatchedClaim, ClaimMode, RunnerConfig, RunParameters, SingleClaim
from sf_runner.engine.claimer import select_claim_mode, select_claim_strategy
from sf_runner.models.config import MANAGED_API_URL
from tests.helpers.fakes import FakeApi, single_claim


pytestmark = pytest.mark.unit_runner


@pytest.mark.parametrize(
    ("api_url", "batched", "environ", "expected"),
    [
        ("http://localhost:8080", False, {}, ClaimMode.SINGLE),
        (MANAGED_API_URL, False, {}, ClaimMode.BATCHED),
        (MANAGED_API_URL + "/", False, {}, ClaimMode.BATCHED),
        ("http://localhost:8080", False, {"SF_ENFORCE_MANAGED": "true"}, ClaimMode.BATCHED),
        ("http://localhost:8080", False, {"SF_ENFORCE_MANAGED": "no"}, ClaimMode.SINGLE),
        ("http://localhost:8080", False, {"SF_BATCHED_ORCHESTRATION": "1"}, ClaimMode.BATCHED),
        ("http://localhost:8080", True, {}, ClaimMode.BATCHED),
    ],
)
def test_select_claim_mode(api_url, batched, environ, expected):
    config = RunnerConfig(api_url=api_url, batched_orchestration=batched)
    assert select_claim_mode(config, environ) is expected


def test_strategy_uses_parameter_batch_size_over_config():
    config = RunnerConfig(batch_size=2)
    strategy = select_claim_strategy(
        FakeApi(), config, RunParameters(specs=["a"], batch_size=5), environ={}
    )
    assert isinstance(strategy, BatchedClaim)
    assert strategy.batch_size == 5


def test_strategy_falls_back_to_config_batch_size():
    config = RunnerConfig(batch_size=2)
    strategy = select_claim_strategy(FakeApi(), config, RunParameters(specs=["a"]), environ={})
    assert isinstance(strategy, BatchedClaim)
    assert strategy.batch_size == 2


def test_single_claim_wraps_the_granted_spec(run_meta):
    api = FakeApi(single=[single_claim("a.spec", "inst-a", claimed=1, total=3)])
    batch = SingleClaim(api).claim(run_meta)

    assert batch.specs == ["a.spec"]
    assert batch.units[0].instance_id == "inst-a"
    assert (batch.claimed_count, batch.total_count) == (1, 3)


def test_single_claim_without_spec_is_empty(run_meta):
    api = FakeApi(single=[{"spec": "a.spec", "instanceId": None}])
    batch = SingleClaim(api).claim(run_meta)
    assert batch.units == ()
    assert (batch.claimed_count, batch.total_count) == (0, 0)


def test_batched_claim_preserves_service_order(run_meta):
    api = FakeApi(batched=[["c", "a", "b"]])
    batch = BatchedClaim(api, 3).claim(run_meta)

    assert batch.specs == ["c", "a", "b"]
    assert [unit.instance_id for unit in batch.units] == ["inst-c", "inst-a", "inst-b"]
    assert api.claim_calls == [("batched", 3)]


def test_batched_claim_ignores_specs_beyond_batch_size(run_meta, caplog):
    api = FakeApi(batched=[["a", "b", "c"]])
    caplog.set_level(logging.WARNING)

    batch = BatchedClaim(api, 2).claim(run_meta)

    assert batch.specs == ["a", "b"]
    assert any("ignoring the extra specs" in record.getMessage() for record in caplog.records)


def test_batched_claim_skips_malformed_entries(run_meta, mocker, caplog):
    caplog.set_level(logging.WARNING)
    api = mocker.Mock()
    api.create_batched_instances.return_value = {
        "specs": [{"spec": "a", "instanceId": "i-a"}, {"spec": "b"}, "junk"],
        "claimedInstances": "2",
        "totalInstances": None,
    }
    batch = BatchedClaim(api, 4).claim(run_meta)

    assert batch.specs == ["a"]
    assert (batch.claimed_count, batch.total_count) == (2, 0)
    skipped = [record.getMessage() for record in caplog.records if "malformed" in record.getMessage()]
    assert len(skipped) == 2
    assert "'spec': 'b'" in skipped[0]
    assert "junk" in skipped[1]


def test_batched_claim_rejects_non_positive_size():
    with pytest.raises(ValueError):
        BatchedClaim(FakeApi(), 0)
