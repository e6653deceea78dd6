"""End-to-end run sessions with fake service and engine."""

from __future__ import annotations

import sys

import pytest

from sf_common.errors import AuthorityError
from sf_runner.api import CaptureBuffer, RunnerConfig, RunParameters, run
from sf_runner.engine.session import RunOutcome, build_create_run_payload, build_run_meta
from sf_runner.models.config import EngineConfig
from sf_runner.models.results import SpecSummary
from tests.helpers.fakes import FakeApi, FakeEngine, passing_report, single_claim


pytestmark = pytest.mark.unit_runner


@pytest.fixture
def config() -> RunnerConfig:
    return RunnerConfig(
        api_url="http://localhost:8080",
        record_key="secret",
        project_id="proj",
        engine=EngineConfig(name="fake-engine", version="1.2"),
    )


def test_create_run_payload_describes_the_run(config, run_meta):
    params = RunParameters(specs=["a", "b"], ci_build_id="build-7", group="linux", tags=["nightly"])

    payload = build_create_run_payload(config, params, run_meta.platform)

    assert payload["projectId"] == "proj"
    assert payload["ciBuildId"] == "build-7"
    assert payload["group"] == "linux"
    assert payload["tags"] == ["nightly"]
    assert payload["specs"] == ["a", "b"]
    assert payload["platform"]["osName"] == "Linux"


def test_run_meta_requires_identifiers(run_meta):
    meta = build_run_meta(
        {"runId": "r", "groupId": "g", "machineId": "m"}, run_meta.platform
    )
    assert (meta.run_id, meta.group_id, meta.machine_id) == ("r", "g", "m")

    with pytest.raises(AuthorityError):
        build_run_meta({"runId": "r"}, run_meta.platform)


def test_outcome_exit_code_reflects_failures():
    passed = SpecSummary(spec="a", status="passed")
    failed = SpecSummary(spec="b", status="failed", failures=1)

    assert RunOutcome(run_id="r", run_url=None, summary={"a": passed}).exit_code == 0
    outcome = RunOutcome(run_id="r", run_url=None, summary={"a": passed, "b": failed})
    assert outcome.failed_specs == ["b"]
    assert outcome.exit_code == 1


def test_run_registers_then_executes_until_done(config):
    api = FakeApi(single=[single_claim("a", "inst-a"), single_claim("b", "inst-b")])
    engine = FakeEngine(report=lambda specs: passing_report(specs, failures={"b": 1}))

    outcome = run(
        config,
        RunParameters(specs=["a", "b"]),
        api=api,
        engine=engine,
        capture=CaptureBuffer(),
        environ={},
    )

    assert api.created_runs[0]["platform"]["engine"] == "fake-engine"
    assert api.created_runs[0]["platform"]["engineVersion"] == "1.2"
    assert outcome.run_id == "run-1"
    assert outcome.run_url == "https://dashboard.example/run-1"
    assert list(outcome.summary) == ["a", "b"]
    assert outcome.failed_specs == ["b"]
    assert outcome.exit_code == 1


def test_run_captures_printed_output_per_instance(config):
    api = FakeApi(single=[single_claim("a", "inst-a")])
    engine = FakeEngine(on_run=lambda spec: print(f"engine says {spec}"))
    original_stdout = sys.stdout

    run(
        config,
        RunParameters(specs=["a"]),
        api=api,
        engine=engine,
        capture=CaptureBuffer(),
        environ={},
    )

    assert "engine says a" in api.stdout["inst-a"]
    assert sys.stdout is original_stdout


def test_run_surfaces_service_warnings(config, caplog, mocker):
    api = FakeApi()
    mocker.patch.object(
        api,
        "create_run",
        return_value={
            "runId": "r",
            "groupId": "g",
            "machineId": "m",
            "warnings": [{"message": "Plan limit almost reached"}, "Old client"],
        },
    )

    outcome = run(config, RunParameters(specs=["a"]), api=api, engine=FakeEngine(), capture=CaptureBuffer(), environ={})

    assert outcome.summary == {}
    assert "Plan limit almost reached" in caplog.text
    assert "Old client" in caplog.text


def test_run_leaves_caller_capture_installed(config):
    api = FakeApi(single=[single_claim("a", "inst-a")])
    capture = CaptureBuffer()
    capture.install()
    try:
        run(config, RunParameters(specs=["a"]), api=api, engine=FakeEngine(), capture=capture, environ={})
        assert capture.installed
    finally:
        capture.uninstall()
