from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
import logging
import os
from typing import Any

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace import Span
from opentelemetry.util.re import parse_env_headers

from jobboard.core.config import Settings
from jobboard.services.aggregate import parse_record_id

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s span_id=%(span_id)s %(message)s"
ADMIN_SPAN_ATTRIBUTE = "jobboard.admin_id"
UNTRACED_ROUTES = "healthz"


@dataclass(slots=True)
class TelemetryRuntime:
    enabled: bool
    provider: TracerProvider | None


class TraceContextFilter(logging.Filter):
    """Stamps the active span's ids onto every record so the log format can print them."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        if context.is_valid:
            record.trace_id = format(context.trace_id, "032x")
            record.span_id = format(context.span_id, "016x")
        else:
            record.trace_id = "0" * 32
            record.span_id = "0" * 16
        return True


def configure_api_logging() -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    for handler in root.handlers:
        if not any(isinstance(existing, TraceContextFilter) for existing in handler.filters):
            handler.addFilter(TraceContextFilter())


def setup_api_telemetry(app: FastAPI, settings: Settings) -> TelemetryRuntime:
    if not settings.otel_enabled:
        logger.info("tracing disabled for service=%s", settings.otel_service_name)
        return TelemetryRuntime(enabled=False, provider=None)

    if settings.otel_log_correlation:
        configure_api_logging()

    provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME: settings.otel_service_name,
                DEPLOYMENT_ENVIRONMENT: settings.environment,
            }
        ),
        sampler=ParentBased(TraceIdRatioBased(clamp_sample_ratio(settings.otel_trace_sample_ratio))),
    )
    endpoint = resolve_traces_endpoint(settings)
    if endpoint:
        exporter = OTLPSpanExporter(endpoint=endpoint, headers=exporter_headers(settings) or None)
        provider.add_span_processor(BatchSpanProcessor(exporter))
    else:
        logger.info("no OTLP traces endpoint; spans for %s stay in-process", settings.otel_service_name)

    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=provider,
        excluded_urls=UNTRACED_ROUTES,
        server_request_hook=admin_request_hook(settings.admin_id_header),
    )
    return TelemetryRuntime(enabled=True, provider=provider)


def shutdown_api_telemetry(app: FastAPI, runtime: TelemetryRuntime) -> None:
    if not runtime.enabled:
        return
    FastAPIInstrumentor.uninstrument_app(app)
    if runtime.provider is not None:
        runtime.provider.force_flush()
        runtime.provider.shutdown()


def resolve_traces_endpoint(settings: Settings, environ: Mapping[str, str] = os.environ) -> str | None:
    """Explicit setting, then the traces-specific env var, then the generic OTLP base with /v1/traces."""
    if settings.otel_exporter_otlp_endpoint:
        return settings.otel_exporter_otlp_endpoint
    traces_endpoint = environ.get("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
    if traces_endpoint:
        return traces_endpoint
    base_endpoint = environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")
    if base_endpoint:
        return f"{base_endpoint.rstrip('/')}/v1/traces"
    return None


def exporter_headers(settings: Settings, environ: Mapping[str, str] = os.environ) -> dict[str, str]:
    raw = settings.otel_exporter_otlp_headers or environ.get("OTEL_EXPORTER_OTLP_HEADERS")
    if not raw:
        return {}
    return dict(parse_env_headers(raw, liberal=True))


def clamp_sample_ratio(ratio: float) -> float:
    return min(max(ratio, 0.0), 1.0)


def admin_request_hook(header_name: str) -> Callable[[Span, dict[str, Any]], None]:
    """Server-span hook that records the forwarded admin id, when it parses, on the request span."""
    wanted = header_name.lower().encode("latin-1")

    def hook(span: Span, scope: dict[str, Any]) -> None:
        if span is None or not span.is_recording():
            return
        for name, value in scope.get("headers") or ():
            if name.lower() != wanted:
                continue
            admin_id = parse_record_id(value.decode("latin-1"))
            if admin_id is not None:
                span.set_attribute(ADMIN_SPAN_ATTRIBUTE, admin_id)
            return

    return hook
