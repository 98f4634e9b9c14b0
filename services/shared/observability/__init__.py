"""
Shared observability helpers: JSON logging and tracing bootstrap, correlation
context, and privacy-preserving payload fingerprints.
"""

from .privacy import hash_payload, mask_labels
from .telemetry import (
    CORRELATION_ID_HEADER,
    SESSION_ID_HEADER,
    RequestContextToken,
    TelemetrySettings,
    bind_request_context,
    bind_submission_context,
    ensure_request_id,
    model_call_span,
    reset_request_context,
    reset_submission_context,
    setup_telemetry,
)

__all__ = [
    "hash_payload",
    "mask_labels",
    "CORRELATION_ID_HEADER",
    "SESSION_ID_HEADER",
    "RequestContextToken",
    "TelemetrySettings",
    "bind_request_context",
    "bind_submission_context",
    "ensure_request_id",
    "model_call_span",
    "reset_request_context",
    "reset_submission_context",
    "setup_telemetry",
]
