"""HTTP surface exposing per-agent completion, stats and health endpoints."""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict
from typing import Any, Dict

from fastapi import FastAPI, Query, Response
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, generate_latest

from agent_brain.agent import AgentDirectory, build_runtime
from agent_brain.config import Settings
from agent_brain.errors import ConfigurationError, FatalRoutingError, StorageUnavailable
from agent_brain.models import CompletionRequest, CompletionResult
from agent_brain.utils.logging import configure_logging, logger
from agent_brain.utils.tracing import configure_tracing

REQUEST_COUNT = Counter("agent_brain_http_requests_total", "Total HTTP requests", ["path"])
START_TIME = time.time()
UPTIME_GAUGE = Gauge("agent_brain_uptime_seconds", "Application uptime in seconds")


def _result_payload(result: CompletionResult) -> Dict[str, Any]:
    return {
        "success": result.success,
        "provider": result.provider,
        "response": result.response,
        "cost": result.cost,
        "cached": result.cached,
        "agentId": result.agent_id,
        "memoryContextUsed": result.memory_context_used,
        "selfHealed": result.self_healed,
    }


def _error_payload(exc: ConfigurationError | FatalRoutingError, agent_id: str) -> Dict[str, Any]:
    return {
        "success": False,
        "error": str(exc),
        "kind": exc.kind,
        "agentId": agent_id,
        "attempts": [asdict(a) for a in getattr(exc, "attempts", [])],
    }


def _consume_outcome(task: asyncio.Task) -> None:
    """Retrieve and log the error of a request whose client may have gone."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.info("agent_request_error", error=str(exc), kind=getattr(exc, "kind", None))


def create_app(directory: AgentDirectory | None = None, settings: Settings | None = None) -> FastAPI:
    """Create and return the FastAPI application."""
    if directory is None:
        settings = settings or Settings.load()
        configure_logging(settings.log_level, settings.log_path, settings.log_max_bytes)
        configure_tracing(settings.otel_trace_url)
        directory = build_runtime(settings)

    app = FastAPI(title="agent-brain")
    app.state.directory = directory
    FastAPIInstrumentor.instrument_app(app)

    @app.middleware("http")
    async def record_metrics(request, call_next):
        REQUEST_COUNT.labels(path=request.url.path.split("/")[-1] or "/").inc()
        return await call_next(request)

    @app.exception_handler(StorageUnavailable)
    async def storage_unavailable(request, exc: StorageUnavailable) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"error": str(exc), "kind": "storage", "tier": exc.tier},
        )

    @app.post("/agents/{name}/complete")
    async def complete(name: str, body: CompletionRequest) -> Any:
        actor = directory.get(name)
        # the actor finishes and persists even if the client goes away
        task = asyncio.ensure_future(actor.handle(body))
        task.add_done_callback(_consume_outcome)
        try:
            result = await asyncio.shield(task)
        except ConfigurationError as exc:
            return JSONResponse(status_code=400, content=_error_payload(exc, actor.agent_id))
        except FatalRoutingError as exc:
            return JSONResponse(status_code=503, content=_error_payload(exc, actor.agent_id))
        return _result_payload(result)

    @app.get("/agents/{name}/stats")
    async def stats(name: str) -> Dict[str, Any]:
        return await directory.get(name).stats()

    @app.get("/agents/{name}/health")
    async def health(name: str) -> Dict[str, str]:
        return directory.get(name).health()

    @app.get("/usage")
    async def usage(days: int = Query(7, ge=1, le=366)) -> Dict[str, Any]:
        return {"days": days, "providers": await directory.memory.usage_stats(days)}

    @app.get("/providers/health")
    async def providers_health(probe: bool = False) -> Dict[str, Any]:
        return {"providers": await directory.router.registry.health(probe)}

    @app.get("/metrics")
    async def metrics() -> Response:
        UPTIME_GAUGE.set(int(time.time() - START_TIME))
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


__all__ = ["create_app"]
