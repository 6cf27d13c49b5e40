"""
BI Tier Engine — FastAPI Application Entry Point

POST /v1/tiers/score            → inline tier calculation (nothing stored)
POST /v1/tiers/movement         → tier movement between two periods
POST /v1/admin/calculate-tiers  → recalculate + write back a currency's tiers
GET  /v1/admin/tiers/{currency} → stored tiers for a period
GET  /metrics                   → Prometheus
"""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from tier_engine.api.admin_endpoint import router as admin_router
from tier_engine.api.tier_endpoint import router as tier_router
from tier_engine.core.config import Settings, get_settings

SERVICE_VERSION = "1.0.0"


def configure_logging(settings: Settings) -> None:
    """Console output while developing, one JSON object per event elsewhere."""
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.app_env == "development"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(settings.log_level),
    )


configure_logging(get_settings())
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(
        "tier_engine_starting",
        env=settings.app_env,
        model_version=settings.scoring_model_version,
        calibration=settings.tier_calibration_method,
        score_model=settings.tier_score_model,
    )
    yield
    logger.info("tier_engine_shutting_down")


app = FastAPI(
    title="BI Tier Engine",
    description="Customer tier scoring and calibration for the MYR / SGD / USC dashboards",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

# Dashboard pages call the read/score endpoints straight from the browser
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "GET"],
    allow_headers=["*"],
)

app.mount("/metrics", make_asgi_app())

app.include_router(tier_router)
app.include_router(admin_router)


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": get_settings().app_name,
        "version": SERVICE_VERSION,
        "currencies": ["USC", "SGD", "MYR"],
        "endpoints": {
            "score": "POST /v1/tiers/score",
            "movement": "POST /v1/tiers/movement",
            "config": "GET /v1/tiers/config",
            "calculate_tiers": "POST /v1/admin/calculate-tiers",
            "stored_tiers": "GET /v1/admin/tiers/{currency}",
        },
    }
