"""
main.py — ASGI Entrypoint for the Valuation Backend

Purpose:
- Configure logging from settings before anything else logs.
- Mount the v1 routers: valuation & snapshots, action plan, tasks,
  assessments, industry multiples and bulk job history.
- Expose liveness endpoints.

Run with:
    uvicorn app.main:app --reload

Routing only; every operation lives in app/services.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import action_plan, assessments, industry_multiples, jobs, tasks, valuation
from app.core.config import settings
from app.core.database import engine
from app.core.logging import configure_logging

configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="Exit Valuation Backend",
    description="Valuation snapshots, buyer readiness and action plans for private companies",
    version="0.1.0",
)

# Browser frontends on other origins during development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------------------------------------------------------
# Routers (/api/v1)
# -----------------------------------------------------------------------------

for module in (valuation, action_plan, tasks, assessments, industry_multiples, jobs):
    app.include_router(module.router, prefix="/api/v1")

# -----------------------------------------------------------------------------
# Health
# -----------------------------------------------------------------------------

@app.get("/")
def root():
    return {"status": "ok", "message": "Valuation backend running"}


@app.get("/health")
def health():
    """Liveness plus the switches that change valuation behavior."""
    return {
        "status": "ok",
        "databaseConfigured": engine is not None,
        "aiNarratives": settings.LLM_ENABLED,
        "valuationAlpha": settings.VALUATION_ALPHA,
        "maxActionPlanTasks": settings.MAX_ACTION_PLAN_TASKS,
    }
