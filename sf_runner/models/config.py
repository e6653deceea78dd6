"""Runner configuration (canonical definition shared by the CLI and session)."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator

from sf_common.config.env import parse_float_env, parse_int_env, parse_list_env
from sf_common.errors import ConfigurationError

MANAGED_API_URL = "https://api.specfleet.dev"

DEFAULT_CONFIG_FILENAME = "specfleet.json"

# --- Pydantic Models for Configuration ---


class EngineConfig(BaseModel):
    """How the test engine is invoked for a batch of specs."""

    name: str = Field(default="engine", description="Engine name reported to the service")
    version: Optional[str] = Field(default=None, description="Engine version reported to the service")
    command: List[str] = Field(
        default_factory=list,
        description="Engine argv; '{spec}' and '{results}' placeholders are substituted per batch",
    )
    cwd: Optional[Path] = Field(default=None, description="Working directory for the engine process")
    env: Dict[str, str] = Field(default_factory=dict, description="Extra environment for the engine process")


class ApiConfig(BaseModel):
    """Transport settings for the orchestration service client."""

    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    max_retries: int = Field(default=3, ge=0, description="Retries on 5xx and connection errors")
    backoff_base: float = Field(default=0.5, ge=0, description="Initial retry delay in seconds")
    backoff_factor: float = Field(default=2.0, ge=1, description="Multiplier applied per retry")


class UploadConfig(BaseModel):
    """What gets shipped after each batch and how many uploads run at once."""

    screenshots: bool = Field(default=True, description="Upload screenshots reported by the engine")
    video: bool = Field(default=True, description="Upload the spec video reported by the engine")
    workers: int = Field(default=4, gt=0, description="Concurrent background upload workers")


class RunnerConfig(BaseModel):
    """Main configuration for a specfleet runner."""

    api_url: str = Field(default=MANAGED_API_URL, description="Base URL of the orchestration service")
    record_key: Optional[str] = Field(default=None, description="Secret key used to record runs")
    project_id: Optional[str] = Field(default=None, description="Project identifier on the service")
    batch_size: int = Field(default=1, gt=0, description="Specs claimed per request in batched mode")
    batched_orchestration: bool = Field(default=False, description="Force batched claiming")

    engine: EngineConfig = Field(default_factory=EngineConfig, description="Test engine invocation")
    api: ApiConfig = Field(default_factory=ApiConfig, description="Service client transport settings")
    uploads: UploadConfig = Field(default_factory=UploadConfig, description="Result upload settings")

    @field_validator("api_url")
    @classmethod
    def _validate_api_url(cls, value: str) -> str:
        trimmed = value.strip().rstrip("/")
        parsed = urlparse(trimmed)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"api_url must be an http(s) URL, got: {value}")
        return trimmed

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunnerConfig":
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError("Invalid runner configuration", cause=exc) from exc

    @classmethod
    def load(cls, filepath: Path) -> "RunnerConfig":
        try:
            raw = filepath.read_text()
        except OSError as exc:
            raise ConfigurationError(
                f"Cannot read config file {filepath}", context={"path": filepath}, cause=exc
            ) from exc
        try:
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid config file {filepath}", context={"path": filepath}, cause=exc
            ) from exc

    def save(self, filepath: Path) -> None:
        filepath.write_text(self.model_dump_json(indent=2, exclude={"record_key"}))

    def with_env(self, environ: Dict[str, str] | None = None) -> "RunnerConfig":
        """Return a copy overlaid with SF_* environment variables."""
        env = os.environ if environ is None else environ
        updates: Dict[str, Any] = {}
        if env.get("SF_API_URL"):
            updates["api_url"] = env["SF_API_URL"]
        if env.get("SF_RECORD_KEY"):
            updates["record_key"] = env["SF_RECORD_KEY"]
        if env.get("SF_PROJECT_ID"):
            updates["project_id"] = env["SF_PROJECT_ID"]
        batch_size = parse_int_env(env.get("SF_BATCH_SIZE"))
        if batch_size is not None:
            updates["batch_size"] = batch_size
        workers = parse_int_env(env.get("SF_UPLOAD_WORKERS"))
        timeout = parse_float_env(env.get("SF_API_TIMEOUT"))
        merged = self.model_dump()
        merged.update(updates)
        if workers is not None:
            merged["uploads"]["workers"] = workers
        if timeout is not None:
            merged["api"]["timeout_seconds"] = timeout
        return RunnerConfig.from_dict(merged)

    def with_overrides(self, **overrides: Any) -> "RunnerConfig":
        """Return a copy with non-None top-level overrides applied."""
        merged = self.model_dump()
        merged.update({key: value for key, value in overrides.items() if value is not None})
        return RunnerConfig.from_dict(merged)


class RunParameters(BaseModel):
    """Per-invocation parameters describing the run being recorded."""

    specs: List[str] = Field(min_length=1, description="Spec identifiers registered with the run")
    ci_build_id: Optional[str] = Field(default=None, description="Shared id across parallel machines")
    group: Optional[str] = Field(default=None, description="Run group name")
    tags: List[str] = Field(default_factory=list, description="Run tags")
    batch_size: Optional[int] = Field(default=None, gt=0, description="Override for config.batch_size")

    @field_validator("specs")
    @classmethod
    def _strip_specs(cls, value: List[str]) -> List[str]:
        cleaned = [spec.strip() for spec in value if spec and spec.strip()]
        if not cleaned:
            raise ValueError("at least one spec is required")
        return cleaned

    @classmethod
    def from_env(cls, specs: List[str], environ: Dict[str, str] | None = None, **values: Any) -> "RunParameters":
        """Build parameters, falling back to SF_CI_BUILD_ID/SF_GROUP/SF_TAGS."""
        env = os.environ if environ is None else environ
        data: Dict[str, Any] = {
            "specs": specs,
            "ci_build_id": values.get("ci_build_id") or env.get("SF_CI_BUILD_ID"),
            "group": values.get("group") or env.get("SF_GROUP"),
            "tags": values.get("tags") or parse_list_env(env.get("SF_TAGS")),
            "batch_size": values.get("batch_size"),
        }
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError("Invalid run parameters", cause=exc) from exc

    def resolved_batch_size(self, config: RunnerConfig) -> int:
        return self.batch_size or config.batch_size

