"""
FastAPI Application for the Financial Insights Service

Thin HTTP layer over InsightRequestHandler. All decisions (validation,
caching, provider chain, fallbacks) live in src/; this module only maps
HTTP requests onto the handler and handler results onto JSON responses.

ENDPOINTS:
- POST /api/ai/financial-insights             insight for a period
- POST /api/ai/financial-insights/aggregates  reduce raw transactions
- GET  /health                                configuration status

Run locally with `python -m app.main`.

The insight endpoint reads the raw body itself so that malformed input
is reported as HTTP 400 by the request validator, not as FastAPI's 422.
"""

from functools import lru_cache

import structlog
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from src import __version__
from src.audit import AuditLogger
from src.config import get_settings, validate_all_settings
from src.insights import build_aggregates
from src.orchestrator import InsightRequestHandler, create_app_components
from src.validation import InsightRequestError, parse_aggregates_request


logger = structlog.get_logger("insights.api")

app = FastAPI(
    title="Financial Insights Service",
    version=__version__,
)


@lru_cache()
def get_components() -> tuple[InsightRequestHandler, AuditLogger]:
    """Build the handler (and its process-wide cache) once."""
    return create_app_components()


def get_handler() -> InsightRequestHandler:
    return get_components()[0]


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Last-resort handler; the insight endpoint itself never raises."""
    logger.error(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.post("/api/ai/financial-insights")
async def financial_insights(
    request: Request,
    handler: InsightRequestHandler = Depends(get_handler),
):
    """
    Generate a financial insight.

    Always 200 for a valid request (AI, rule-based or degraded insight);
    400 with {"error", "details"?} for a malformed one.
    """
    body = await request.body()
    result = await handler.handle(body)
    return JSONResponse(status_code=result.status_code, content=result.body)


@app.post("/api/ai/financial-insights/aggregates")
async def financial_aggregates(request: Request):
    """Reduce raw transactions into the aggregates the insight endpoint expects."""
    body = await request.body()
    try:
        parsed = parse_aggregates_request(body)
    except InsightRequestError as e:
        return JSONResponse(status_code=400, content=e.to_response_body())

    aggregates = build_aggregates(parsed.transactions, parsed.categories)
    return JSONResponse(content=aggregates.model_dump(mode="json", by_alias=True))


@app.get("/health")
async def health_check():
    """Report which settings loaded and which providers are configured."""
    checks = validate_all_settings()
    healthy = all(
        checks.get(name, False) for name in ("gemini", "openai", "insights", "app")
    )
    return {
        "status": "healthy" if healthy else "degraded",
        "version": __version__,
        "environment": get_settings().app.app_environment if healthy else None,
        "checks": checks,
    }


def run(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Serve the app with uvicorn."""
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run()
