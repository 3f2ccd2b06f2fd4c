"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics, served by `start_metrics_server`:
      index_pass_latency_seconds, index_passes_total{outcome},
      diff_messages_total, diff_ids_total, index_queue_pending
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from prometheus_client import Counter, Gauge, Histogram, start_http_server

from listing_indexer.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
INDEX_PASS_LATENCY = Histogram(
    "index_pass_latency_seconds",
    "Wall-clock duration of one indexing pass",
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

INDEX_PASSES_TOTAL = Counter(
    "index_passes_total",
    "Indexing passes by outcome",
    ["outcome"],  # indexed / unchanged / skipped / failed
)

DIFF_MESSAGES_TOTAL = Counter(
    "diff_messages_total",
    "Change-feed messages received",
)

DIFF_IDS_TOTAL = Counter(
    "diff_ids_total",
    "Thing ids extracted from change-feed messages",
)

QUEUE_PENDING = Gauge(
    "index_queue_pending",
    "Thing ids waiting to be indexed",
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing() -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    resource = Resource.create({"service.name": settings.service_name})
    provider = TracerProvider(resource=resource)
    try:
        exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint, insecure=True
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))
        logger.info("OTel tracing configured → %s", settings.otel_exporter_otlp_endpoint)
    except Exception as exc:
        logger.warning("OTel exporter unavailable: %s — traces disabled", exc)
    trace.set_tracer_provider(provider)


def start_metrics_server() -> None:
    start_http_server(settings.metrics_port)
    logger.info("Prometheus metrics on :%d", settings.metrics_port)
