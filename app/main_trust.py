"""
Trust Score Service
Profile trust scoring: factors, badges and improvement suggestions.

Start with:
    uvicorn app.main_trust:app --host 0.0.0.0 --port 8000
"""
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from app.api.trust import SERVICE_VERSION, trust_router

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("service_starting", version=SERVICE_VERSION)

    # Initialize Neo4j schema
    try:
        from app.db.neo4j import init_schema
        init_schema()
        logger.info("neo4j_schema_initialized")
    except Exception as e:
        logger.warning("neo4j_init_failed", error=str(e))

    yield

    # Shutdown
    from app.compute.pipeline import shutdown as pipeline_shutdown
    from app.db.neo4j import close
    pipeline_shutdown()
    close()
    logger.info("service_stopped")


app = FastAPI(
    title="Trust Score Service",
    description=(
        "Computes profile trust scores from verification history, profile "
        "completeness and peer endorsements; awards badges and suggests improvements."
    ),
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.middleware("http")
async def request_middleware(request: Request, call_next):
    request_id = str(uuid.uuid4())[:8]
    start = time.time()
    request.state.request_id = request_id
    response = await call_next(request)
    duration_ms = round((time.time() - start) * 1000, 2)
    response.headers["X-Request-Id"] = request_id
    response.headers["X-Response-Time"] = f"{duration_ms}ms"
    if request.url.path not in ("/health", "/v1/trust/health"):
        logger.info("request",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=duration_ms,
                    request_id=request_id)
    return response


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled_exception",
                 path=request.url.path,
                 error=str(exc),
                 type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "Something went wrong.",
            "request_id": getattr(request.state, "request_id", "unknown"),
        },
    )


app.include_router(trust_router)


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "service": "trust-score-service",
        "version": SERVICE_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
