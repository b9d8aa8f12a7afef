"""
Post Feed API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create tables if not present
  3. Connect to Redis (feed snapshot cache)
  4. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from postfeed.config import settings
from postfeed.database import init_db
from postfeed.errors import PostFeedError, postfeed_exception_handler
from postfeed.telemetry import setup_tracing, instrument_app
from postfeed.clients.redis_client import close_redis, init_redis
from postfeed.routers import users, posts, feed

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Post Feed API (env=%s)", settings.environment)

    await init_db()
    await init_redis()

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await close_redis()


app = FastAPI(
    title="Post Feed API",
    description=(
        "Social posts, likes, comments and follows with a cached, "
        "write-invalidated global feed."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_exception_handler(PostFeedError, postfeed_exception_handler)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(posts.router, prefix="/posts", tags=["Posts"])
app.include_router(feed.router, prefix="/feed", tags=["Feed"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
# Mounted at /metrics — scraped by Prometheus
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
