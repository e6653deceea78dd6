"""Background shipping of per-instance results, artifacts and output."""

from __future__ import annotations

import logging
import mimetypes
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol

from sf_common.errors import SFError, UploadError, error_to_payload, wrap_error
from sf_runner.models.config import UploadConfig
from sf_runner.models.results import RunResult, SpecRun
from sf_runner.models.run import ClaimedUnit
from sf_runner.services.results import build_results_payload

logger = logging.getLogger(__name__)

UploadTask = Callable[[], None]


class UploadApi(Protocol):
    def update_instance_results(self, instance_id: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        ...

    def update_instance_stdout(self, instance_id: str, stdout: str) -> None:
        ...

    def upload_artifact(self, upload_url: str, file_path: Path, content_type: str) -> None:
        ...


def settle_quietly(task: UploadTask, label: str) -> None:
    """Run an upload task, logging any failure instead of raising it."""
    try:
        task()
    except SFError as exc:
        logger.error(
            "Failed to upload results for %s: %s", label, exc, extra={"error": error_to_payload(exc)}
        )
    except Exception as exc:
        logger.error("Failed to upload results for %s: %s", label, exc)


def submit_upload(executor: Executor, task: UploadTask, label: str) -> Future[None]:
    """Start ``task`` in the background; the returned future never raises."""
    return executor.submit(settle_quietly, task, label)


@dataclass
class UploadDispatcher:
    """Build deferred upload tasks for claimed instances."""

    api: UploadApi
    config: UploadConfig

    def build_upload_task(
        self, unit: ClaimedUnit, run_result: RunResult, output: str
    ) -> UploadTask:
        def _upload() -> None:
            self.upload_instance(unit, run_result, output)

        return _upload

    def upload_instance(self, unit: ClaimedUnit, run_result: RunResult, output: str) -> None:
        spec_run = run_result.get(unit.spec)
        try:
            response = self.api.update_instance_results(
                unit.instance_id, build_results_payload(spec_run, run_result)
            )
        except SFError as exc:
            raise wrap_error(
                UploadError,
                f"Reporting results for {unit.spec} failed",
                context={"spec": unit.spec, "instance_id": unit.instance_id},
                cause=exc,
            ) from exc

        if spec_run is not None:
            self._upload_artifacts(unit, spec_run, response)

        try:
            self.api.update_instance_stdout(unit.instance_id, output)
        except SFError as exc:
            raise wrap_error(
                UploadError,
                f"Uploading output for {unit.spec} failed",
                context={"spec": unit.spec, "instance_id": unit.instance_id},
                cause=exc,
            ) from exc
        logger.debug("Uploaded results for %s (%s)", unit.spec, unit.instance_id)

    def _upload_artifacts(
        self, unit: ClaimedUnit, spec_run: SpecRun, response: Mapping[str, Any]
    ) -> None:
        if self.config.screenshots:
            urls = {
                str(entry.get("screenshotId")): entry.get("uploadUrl")
                for entry in response.get("screenshotUploadUrls") or []
                if isinstance(entry, Mapping)
            }
            for shot in spec_run.screenshots:
                url = urls.get(shot.screenshot_id)
                if url:
                    self._upload_file(unit, url, Path(shot.path))
        if self.config.video and spec_run.video and response.get("videoUploadUrl"):
            self._upload_file(unit, str(response["videoUploadUrl"]), Path(spec_run.video))

    def _upload_file(self, unit: ClaimedUnit, url: str, path: Path) -> None:
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        try:
            self.api.upload_artifact(url, path, content_type)
        except (OSError, ValueError, SFError) as exc:
            logger.warning("Failed to upload artifact %s for %s: %s", path, unit.spec, exc)
