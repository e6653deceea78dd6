"""Shared fixtures for runner tests."""

from __future__ import annotations

import pytest

from sf_runner.api import Platform, RunMeta, RunnerConfig, RunParameters


@pytest.fixture
def run_meta() -> RunMeta:
    return RunMeta(
        run_id="run-1",
        group_id="group-1",
        machine_id="machine-1",
        platform=Platform(
            os_name="Linux", os_version="6.1", python_version="3.12.0", engine="engine"
        ),
    )


@pytest.fixture
def local_config() -> RunnerConfig:
    """Config pointing at a self-hosted service (single claim mode by default)."""
    return RunnerConfig(api_url="http://localhost:8080", record_key="secret")


@pytest.fixture
def params() -> RunParameters:
    return RunParameters(specs=["a.spec", "b.spec"])


@pytest.fixture
def no_env() -> dict[str, str]:
    return {}
