"""Runtime environment probes consulted when a run starts."""

from __future__ import annotations

import os
import platform
from typing import Mapping

from sf_common.config.env import parse_bool_env
from sf_runner.models.config import MANAGED_API_URL, RunnerConfig
from sf_runner.models.run import Platform


def is_managed_environment(config: RunnerConfig, environ: Mapping[str, str] | None = None) -> bool:
    """True when running against the managed service (or told to behave so)."""
    env = os.environ if environ is None else environ
    if parse_bool_env(env.get("SF_ENFORCE_MANAGED")):
        return True
    return config.api_url.rstrip("/") == MANAGED_API_URL


def batched_override_requested(
    config: RunnerConfig, environ: Mapping[str, str] | None = None
) -> bool:
    env = os.environ if environ is None else environ
    return config.batched_orchestration or bool(env.get("SF_BATCHED_ORCHESTRATION"))


def collect_platform(config: RunnerConfig) -> Platform:
    return Platform(
        os_name=platform.system() or "unknown",
        os_version=platform.release() or "unknown",
        python_version=platform.python_version(),
        engine=config.engine.name,
        engine_version=config.engine.version,
    )
