"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics: feed cache hit/miss, invalidations, feed latency

Both are initialised once at startup and injected into FastAPI via middleware.
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import Counter, Histogram

from postfeed.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
FEED_LATENCY = Histogram(
    "feed_latency_seconds",
    "Latency of a feed read, cache hit or miss",
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0],
)

FEED_CACHE_LOOKUPS_TOTAL = Counter(
    "feed_cache_lookups_total",
    "Feed cache lookups by outcome",
    ["result"],  # 'hit' | 'miss' | 'error'
)

FEED_INVALIDATIONS_TOTAL = Counter(
    "feed_invalidations_total",
    "Feed cache invalidations by triggering mutation",
    ["reason"],  # 'add_post' | 'comment_post' | 'like_post'
)

POST_INGESTION_TOTAL = Counter(
    "post_ingestion_total",
    "Total number of posts created",
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing() -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "deployment.environment": settings.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    if not settings.otel_exporter_otlp_endpoint:
        logger.info("No OTLP endpoint configured — spans are not exported")
    else:
        _add_otlp_exporter(provider)

    trace.set_tracer_provider(provider)

    # Auto-instrument popular libraries so their spans appear in traces
    RedisInstrumentor().instrument()
    SQLAlchemyInstrumentor().instrument()


def _add_otlp_exporter(provider: TracerProvider) -> None:
    try:
        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(
            "OTel tracing configured → %s", settings.otel_exporter_otlp_endpoint
        )
    except Exception as exc:
        logger.warning("Could not connect to OTLP exporter: %s — traces disabled", exc)


def instrument_app(app) -> None:  # noqa: ANN001
    """Call after app is created to add FastAPI request spans."""
    FastAPIInstrumentor.instrument_app(app)
