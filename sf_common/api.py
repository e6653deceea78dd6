"""Public API surface for sf_common."""

from sf_common.errors import (
    AuthorityError,
    ConfigurationError,
    ExecutionError,
    SFError,
    UploadError,
    error_to_payload,
    wrap_error,
)
from sf_common.logging import configure_logging

__all__ = [
    "configure_logging",
    "SFError",
    "AuthorityError",
    "ConfigurationError",
    "ExecutionError",
    "UploadError",
    "error_to_payload",
    "wrap_error",
]
