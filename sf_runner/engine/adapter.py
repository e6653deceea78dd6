"""Execution adapter running the configured test engine as a subprocess."""

from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Protocol

from sf_common.errors import ExecutionError
from sf_runner.models.config import EngineConfig
from sf_runner.models.results import RawResult

logger = logging.getLogger(__name__)

SPEC_PLACEHOLDER = "{spec}"
RESULTS_PLACEHOLDER = "{results}"


class ExecutionAdapter(Protocol):
    """Runs one or more comma-joined specs and always returns a result."""

    def run_specs_safe(self, spec: str) -> RawResult:
        ...


def failure_result(message: str) -> RawResult:
    """Raw result standing in for an engine invocation that did not finish."""
    return {"status": "failed", "failures": 1, "message": message}


class CommandEngine:
    """Invoke the engine command once per batch and read its JSON report."""

    def __init__(self, config: EngineConfig) -> None:
        self.config = config

    def run_specs_safe(self, spec: str) -> RawResult:
        try:
            return self.run_specs(spec)
        except Exception as exc:
            logger.error("Engine run failed for %s: %s", spec, exc)
            return failure_result(str(exc))

    def run_specs(self, spec: str) -> RawResult:
        if not self.config.command:
            raise ExecutionError("No engine command configured")
        with tempfile.TemporaryDirectory(prefix="specfleet-") as tmp:
            results_path = Path(tmp) / "results.json"
            argv = self._build_argv(spec, results_path)
            logger.debug("Starting engine: %s", argv)
            returncode = self._stream_process(argv, self._build_env(spec, results_path))
            return self._read_results(results_path, returncode)

    def _build_argv(self, spec: str, results_path: Path) -> list[str]:
        return [
            arg.replace(SPEC_PLACEHOLDER, spec).replace(RESULTS_PLACEHOLDER, str(results_path))
            for arg in self.config.command
        ]

    def _build_env(self, spec: str, results_path: Path) -> dict[str, str]:
        env = os.environ.copy()
        env.update(self.config.env)
        env["SF_SPEC"] = spec
        env["SF_RESULTS_FILE"] = str(results_path)
        return env

    def _stream_process(self, argv: list[str], env: dict[str, str]) -> int:
        # Engine output goes through sys.stdout so the capture buffer sees it.
        with subprocess.Popen(
            argv,
            cwd=str(self.config.cwd) if self.config.cwd else None,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
        ) as proc:
            assert proc.stdout is not None
            try:
                for line in proc.stdout:
                    sys.stdout.write(line)
            except BaseException:
                proc.kill()
                raise
            finally:
                sys.stdout.flush()
            return proc.wait()

    @staticmethod
    def _read_results(results_path: Path, returncode: int) -> RawResult:
        if not results_path.exists():
            raise ExecutionError(
                f"Engine exited with code {returncode} without writing results",
                context={"returncode": returncode},
            )
        try:
            data = json.loads(results_path.read_text())
        except json.JSONDecodeError as exc:
            raise ExecutionError("Engine results file is not valid JSON", cause=exc) from exc
        if not isinstance(data, dict) or not isinstance(data.get("runs"), list):
            raise ExecutionError("Engine results file has no 'runs' list")
        data.setdefault("status", "finished")
        data["returncode"] = returncode
        return data
