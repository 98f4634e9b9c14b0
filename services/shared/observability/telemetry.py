"""
Telemetry bootstrap for the budget service.

`setup_telemetry` installs JSON logging whose records carry the service name, the
request and submission IDs bound for the current context, and (when tracing is
on) the active trace/span IDs. Tracing is opt-in through `ENABLE_TELEMETRY`;
`model_call_span` wraps each text generation attempt so that slow or failing
model calls can be located in a trace.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Iterator
from uuid import uuid4

from fastapi import FastAPI, Request
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span
from pythonjsonlogger import jsonlogger

CORRELATION_ID_HEADER = "x-request-id"
SESSION_ID_HEADER = "x-session-id"
DEFAULT_OTLP_ENDPOINT = "http://localhost:4318/v1/traces"
LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(message)s %(service_name)s "
    "%(request_id)s %(submission_id)s %(trace_id)s %(span_id)s"
)
RequestContextToken = Token

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_submission_id: ContextVar[str | None] = ContextVar("submission_id", default=None)
_tracer = trace.get_tracer("budget_service.text_generation")

_configured_services: set[str] = set()
_httpx_instrumented = False


@dataclass(frozen=True)
class TelemetrySettings:
    service_name: str
    traces_enabled: bool = False
    console_export: bool = False
    otlp_endpoint: str = DEFAULT_OTLP_ENDPOINT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, service_name: str) -> "TelemetrySettings":
        return cls(
            service_name=os.getenv("OTEL_SERVICE_NAME", service_name),
            traces_enabled=_env_flag("ENABLE_TELEMETRY"),
            console_export=_env_flag("OTEL_CONSOLE_EXPORT"),
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", DEFAULT_OTLP_ENDPOINT),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def setup_telemetry(app: FastAPI, service_name: str) -> TelemetrySettings:
    """
    Configure logging and, optionally, tracing for the provided FastAPI app.

    Args:
        app: FastAPI app instance that should emit spans/logs.
        service_name: Default service label; `OTEL_SERVICE_NAME` overrides it.
    Returns:
        The settings that were applied.
    """

    settings = TelemetrySettings.from_env(service_name)
    if settings.service_name in _configured_services:
        return settings

    _configure_logging(settings)
    if settings.traces_enabled:
        _configure_tracing(settings)
        FastAPIInstrumentor.instrument_app(app)
        _instrument_httpx()
        LoggingInstrumentor().instrument(set_logging_format=False)

    _configured_services.add(settings.service_name)
    return settings


def ensure_request_id(request: Request | None, header_name: str = CORRELATION_ID_HEADER) -> str:
    """Return the inbound correlation ID, or mint a UUID4 and remember it on `request.state`."""

    request_id = None
    if request is not None:
        request_id = request.headers.get(header_name) or getattr(request.state, "request_id", None)
    request_id = request_id or str(uuid4())
    if request is not None:
        request.state.request_id = request_id
    return request_id


def bind_request_context(request_id: str | None) -> RequestContextToken:
    return _request_id.set(request_id)


def reset_request_context(token: RequestContextToken | None) -> None:
    if token is not None:
        _request_id.reset(token)


def bind_submission_context(submission_id: str | None) -> RequestContextToken:
    """Tag subsequent log records and model-call spans with the budget submission being evaluated."""

    return _submission_id.set(submission_id)


def reset_submission_context(token: RequestContextToken | None) -> None:
    if token is not None:
        _submission_id.reset(token)


@contextmanager
def model_call_span(operation: str, provider: str, attempt: int) -> Iterator[Span]:
    """
    Open a span around one text generation attempt.

    Without a configured tracer provider this is a no-op span. Exceptions are
    recorded on the span (status ERROR) and re-raised unchanged.
    """

    attributes = {
        "budget.operation": operation,
        "budget.provider": provider,
        "budget.attempt": attempt,
    }
    submission_id = _submission_id.get()
    if submission_id:
        attributes["budget.submission_id"] = submission_id

    with _tracer.start_as_current_span(f"text_generation.{operation}", attributes=attributes) as span:
        yield span


def _configure_logging(settings: TelemetrySettings) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
    handler.addFilter(_ContextLogFilter(settings.service_name, settings.traces_enabled))
    logging.basicConfig(level=settings.log_level, handlers=[handler], force=True)


def _configure_tracing(settings: TelemetrySettings) -> None:
    if isinstance(trace.get_tracer_provider(), TracerProvider):
        return

    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: settings.service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))
    if settings.console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)


def _instrument_httpx() -> None:
    # The OpenAI SDK talks HTTP through httpx, so model calls get child spans.
    global _httpx_instrumented
    if _httpx_instrumented:
        return
    HTTPXClientInstrumentor().instrument()
    _httpx_instrumented = True


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").strip().lower() in {"1", "true", "yes", "on"}


def _current_trace_ids() -> tuple[str | None, str | None]:
    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return None, None
    return format(span_context.trace_id, "032x"), format(span_context.span_id, "016x")


class _ContextLogFilter(logging.Filter):
    """Copies service, correlation and trace identifiers onto every record."""

    def __init__(self, service_name: str, traces_enabled: bool) -> None:
        super().__init__()
        self._service_name = service_name
        self._traces_enabled = traces_enabled

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self._service_name
        record.request_id = _request_id.get()
        record.submission_id = _submission_id.get()
        record.trace_id, record.span_id = _current_trace_ids() if self._traces_enabled else (None, None)
        return True
