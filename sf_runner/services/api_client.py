"""HTTP client for the specfleet orchestration service."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib import error, parse, request

from sf_common.errors import AuthorityError
from sf_runner.models.config import ApiConfig, RunnerConfig
from sf_runner.models.run import RunMeta

logger = logging.getLogger(__name__)

CLIENT_VERSION = "0.1.0"


def _validate_http_url(url: str, label: str) -> str:
    parsed = parse.urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"{label} must be an http(s) URL, got: {url}")
    return url


@dataclass
class OrchestrationClient:
    """Lightweight service client with retry support for transport failures."""

    base_url: str
    record_key: str | None = None
    timeout_seconds: float = 30.0
    max_retries: int = 3
    backoff_base: float = 0.5
    backoff_factor: float = 2.0

    def __post_init__(self) -> None:
        self.base_url = _validate_http_url(self.base_url.rstrip("/"), "Service base_url")

    @classmethod
    def from_config(cls, config: RunnerConfig) -> "OrchestrationClient":
        api: ApiConfig = config.api
        return cls(
            base_url=config.api_url,
            record_key=config.record_key,
            timeout_seconds=api.timeout_seconds,
            max_retries=api.max_retries,
            backoff_base=api.backoff_base,
            backoff_factor=api.backoff_factor,
        )

    def create_run(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        _, data = self._request("POST", "/runs", payload=payload, expected_statuses={200, 201})
        return self._require_body(data, "/runs")

    def create_instance(self, meta: RunMeta) -> dict[str, Any]:
        path = f"/runs/{parse.quote(meta.run_id, safe='')}/instances"
        _, data = self._request("POST", path, payload=meta.to_payload(), expected_statuses={200, 201})
        return self._require_body(data, path)

    def create_batched_instances(self, meta: RunMeta, batch_size: int) -> dict[str, Any]:
        path = f"/runs/{parse.quote(meta.run_id, safe='')}/batched-instances"
        payload = {**meta.to_payload(), "batchSize": batch_size}
        _, data = self._request("POST", path, payload=payload, expected_statuses={200, 201})
        return self._require_body(data, path)

    def update_instance_results(
        self, instance_id: str, payload: Mapping[str, Any]
    ) -> dict[str, Any]:
        path = f"/instances/{parse.quote(instance_id, safe='')}/results"
        _, data = self._request("POST", path, payload=payload, expected_statuses={200, 201})
        return data or {}

    def update_instance_stdout(self, instance_id: str, stdout: str) -> None:
        path = f"/instances/{parse.quote(instance_id, safe='')}/stdout"
        self._request("PUT", path, payload={"stdout": stdout}, expected_statuses={200, 204})

    def upload_artifact(self, upload_url: str, file_path: Path, content_type: str) -> None:
        """PUT a local file to a presigned storage URL."""
        _validate_http_url(upload_url, "Artifact upload URL")
        body = file_path.read_bytes()
        self._send(
            "PUT",
            upload_url,
            data=body,
            headers={"Content-Type": content_type},
            expected={200, 201, 204},
            label=f"artifact {file_path.name}",
        )

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "x-specfleet-version": CLIENT_VERSION,
        }
        if self.record_key:
            headers["Authorization"] = f"Bearer {self.record_key}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        payload: Mapping[str, Any] | None = None,
        expected_statuses: set[int] | None = None,
    ) -> tuple[int, dict[str, Any] | None]:
        url = f"{self.base_url}{path}"
        headers = self._headers()
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        status, body = self._send(
            method,
            url,
            data=data,
            headers=headers,
            expected=expected_statuses or {200},
            label=path,
        )
        return status, self._parse_json(body)

    def _send(
        self,
        method: str,
        url: str,
        *,
        data: bytes | None,
        headers: dict[str, str],
        expected: set[int],
        label: str,
    ) -> tuple[int, str]:
        context = {"method": method, "path": label}
        for attempt in range(self.max_retries + 1):
            try:
                req = request.Request(url, data=data, headers=headers, method=method)
                with request.urlopen(  # nosec B310
                    req, timeout=self.timeout_seconds
                ) as resp:
                    status = resp.status
                    body = resp.read().decode("utf-8") if resp is not None else ""
                if status in expected:
                    return status, body
                if 500 <= status and attempt < self.max_retries:
                    self._sleep_backoff(attempt)
                    continue
                raise AuthorityError(
                    f"Service error {status} for {method} {label}: {body}",
                    context={**context, "status": status},
                )
            except error.HTTPError as exc:
                status = exc.code
                body = exc.read().decode("utf-8") if exc.fp else ""
                if status in expected:
                    return status, body
                if status >= 500 and attempt < self.max_retries:
                    self._sleep_backoff(attempt)
                    continue
                raise AuthorityError(
                    f"Service error {status} for {method} {label}: {self._error_message(body)}",
                    context={**context, "status": status},
                    cause=exc,
                ) from exc
            except error.URLError as exc:
                if attempt < self.max_retries:
                    logger.debug("Request %s %s failed (%s), retrying", method, label, exc)
                    self._sleep_backoff(attempt)
                    continue
                raise AuthorityError(
                    f"Service request {method} {label} failed: {exc.reason}",
                    context=context,
                    cause=exc,
                ) from exc
        raise AuthorityError(f"Service request {method} {label} failed after retries", context=context)

    @staticmethod
    def _require_body(data: dict[str, Any] | None, path: str) -> dict[str, Any]:
        if data is None:
            raise AuthorityError(f"Service returned an empty or invalid body for {path}", context={"path": path})
        return data

    @classmethod
    def _error_message(cls, body: str) -> str:
        parsed = cls._parse_json(body)
        if parsed and parsed.get("message"):
            return str(parsed["message"])
        return body

    @staticmethod
    def _parse_json(body: str) -> dict[str, Any] | None:
        if not body:
            return None
        try:
            parsed = json.loads(body)
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            return None

    def _sleep_backoff(self, attempt: int) -> None:
        delay = self.backoff_base * (self.backoff_factor ** attempt)
        if delay > 0:
            time.sleep(delay)
