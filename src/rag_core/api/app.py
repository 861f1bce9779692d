"""FastAPI application factory with lifespan management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from rag_core.api.middleware import RequestTimingMiddleware
from rag_core.api.routes_admission import router as admission_router
from rag_core.api.routes_evaluation import router as evaluation_router
from rag_core.api.routes_health import router as health_router
from rag_core.api.routes_metrics import router as metrics_router
from rag_core.api.routes_query import router as query_router
from rag_core.config.settings import Settings
from rag_core.observability.logger import get_logger, setup_logging
from rag_core.observability.metrics import MetricsSink
from rag_core.pipeline.factory import build_services
from rag_core.protocols.llm import TextGenerator
from rag_core.storage.sqlite_metrics_sink import SQLiteMetricsSink

logger = get_logger("app")


def create_app(
    settings: Settings | None = None,
    generator: TextGenerator | None = None,
    start_maintenance: bool = True,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = settings or Settings()
        setup_logging(resolved.log_level, resolved.log_json)

        sink: MetricsSink | None = None
        if resolved.metrics_db_path:
            Path(resolved.metrics_db_path).parent.mkdir(parents=True, exist_ok=True)
            sqlite_sink = SQLiteMetricsSink(resolved.metrics_db_path)
            await sqlite_sink.initialize()
            sink = sqlite_sink

        services = build_services(resolved, generator=generator, metrics_sink=sink)
        if start_maintenance:
            services.scheduler.start()

        app.state.services = services
        app.state.settings = resolved

        logger.info(
            "startup_complete",
            indexed_chunks=services.index.size,
            maintenance=services.scheduler.running,
            metrics_db=resolved.metrics_db_path or None,
        )

        yield

        await services.scheduler.stop()
        flushed = await services.controller.state.batches.flush_all()
        logger.info("shutdown_complete", flushed_batches=flushed)

    app = FastAPI(
        title="RAG Core",
        version="1.0.0",
        description="Cost-aware, answerability-gated retrieval-augmented question answering",
        lifespan=lifespan,
    )
    app.add_middleware(RequestTimingMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(query_router, tags=["query"])
    app.include_router(admission_router, tags=["admission"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(evaluation_router, tags=["evaluation"])
    return app
