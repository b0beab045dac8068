"""
Job Orchestrator - Main Entry Point

OpenAI-compatible chat gateway in front of an LLM backend. Job search,
place lookup, document OCR and policy consultation run as server-side
tools; job listings always come from the job board, never from the model.

Usage:
    python -m job_orchestrator.main

Environment Variables:
    ORCH_HOST       - Server host (default: 0.0.0.0)
    ORCH_PORT       - Server port (default: 8080)
    EXPOSED_MODEL   - Published model name (default: qd-job-turbo)
    LLM_BASE_URL    - OpenAI-compatible backend URL
    LLM_MODEL       - Backend model id
    JOB_API_URL     - Job board search endpoint
    AMAP_API_KEY    - Maps API key
    OCR_BASE_URL    - OCR service URL
    POLICY_BASE_URL - Policy consultation service URL
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .amap_client import AmapClient
from .api import router as api_router
from .config import Config, config
from .content_resolver import ContentResolver
from .dispatcher import ToolDispatcher
from .engine import ChatEngine
from .errors import GatewayError
from .job_client import JobClient
from .llm_client import LLMClient
from .metrics import Metrics, metrics_middleware
from .ocr_client import OCRClient
from .policy_client import PolicyClient
from .ratelimit import TokenBucket, rate_limit_middleware

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def build_engine(cfg: Config):
    """Create the remote clients and the engine that uses them."""
    llm = LLMClient.from_config(cfg)
    amap = AmapClient.from_config(cfg)
    jobs = JobClient.from_config(cfg)
    ocr = OCRClient.from_config(cfg)
    policy = PolicyClient.from_config(cfg)

    engine = ChatEngine(
        llm=llm,
        dispatcher=ToolDispatcher(amap=amap, jobs=jobs, ocr=ocr, policy=policy),
        resolver=ContentResolver(ocr),
        cfg=cfg,
    )
    return engine, [llm, amap, jobs, ocr, policy]


def create_app(engine: Optional[ChatEngine] = None, cfg: Config = config) -> FastAPI:
    """
    Build the FastAPI application.

    When ``engine`` is given it is used as is and nothing is opened or
    closed by the lifespan; otherwise the engine and its clients are
    created at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown lifecycle."""
        logger.info("=" * 60)
        logger.info("Job Orchestrator Starting")
        logger.info("=" * 60)

        clients = []
        if app.state.engine is None:
            app.state.engine, clients = build_engine(cfg)

        logger.info(f"LLM backend: {cfg.llm_base_url} (model {cfg.llm_model})")
        logger.info(f"Published model: {cfg.exposed_model}")
        logger.info(f"City: {cfg.city_name} ({len(cfg.area_codes)} areas)")
        logger.info(f"Max tool rounds: {cfg.max_iterations}")
        logger.info(f"Rate limit: burst {cfg.rate_limit_capacity}, {cfg.rate_limit_refill}/s")

        logger.info("-" * 60)
        logger.info(f"Server ready at http://{cfg.host}:{cfg.port}")
        logger.info(f"OpenAI endpoint: http://{cfg.host}:{cfg.port}/v1/chat/completions")
        logger.info("=" * 60)

        yield

        # Shutdown
        logger.info("Shutting down...")
        for client in clients:
            await client.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Job Orchestrator",
        description=(
            "OpenAI-compatible chat gateway with server-side tools for job "
            "search, place lookup, document OCR and policy consultation. "
            "Job listings are streamed straight from the job board."
        ),
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.config = cfg
    app.state.engine = engine
    app.state.metrics = Metrics()

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        logger.warning(f"{request.method} {request.url.path} -> {exc.http_status} {exc.code}: {exc.message}")
        return JSONResponse(
            status_code=exc.http_status,
            content={"error": {"message": exc.message, "type": exc.code}},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": {"message": "internal server error", "type": "internal_error"}},
        )

    # Middleware runs in reverse order of registration: CORS, metrics, rate limit
    app.middleware("http")(rate_limit_middleware(
        TokenBucket(cfg.rate_limit_capacity, cfg.rate_limit_refill),
    ))
    if cfg.enable_metrics:
        app.middleware("http")(metrics_middleware(app.state.metrics))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "model": cfg.exposed_model,
            "backend": cfg.llm_base_url,
            "city": cfg.city_name,
        }

    @app.get("/")
    async def root():
        """Root endpoint with basic info."""
        endpoints = {
            "chat": "/v1/chat/completions",
            "models": "/v1/models",
            "health": "/health",
        }
        if cfg.enable_metrics:
            endpoints["metrics"] = "/metrics"
        return {
            "name": "Job Orchestrator",
            "version": VERSION,
            "model": cfg.exposed_model,
            "endpoints": endpoints,
        }

    if cfg.enable_metrics:
        @app.get("/metrics")
        async def metrics():
            """Request counters and latency."""
            return app.state.metrics.snapshot()

    return app


# Create FastAPI app
app = create_app()


def main():
    """Run the orchestrator server."""
    uvicorn.run(
        "job_orchestrator.main:app",
        host=config.host,
        port=config.port,
        reload=False,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
