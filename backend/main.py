"""
ScaleLens — Scaled Score Comparison API
FastAPI backend entry point.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.parser import SAMPLE_DATA_DIR
from core.scaling import load_scaling_oracle
from core.set_plan import load_set_plan_table
from core.subjects import load_subject_lookup
from routes.chart import router as chart_router
from routes.cohort import router as cohort_router
from routes.reports import router as reports_router
from routes.scaling import router as scaling_router
from routes.set_plan import router as set_plan_router

# Load environment
load_dotenv()

APP_NAME = os.getenv("APP_NAME", "ScaleLens")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_RESULT_VARIATION = float(os.getenv("DEFAULT_RESULT_VARIATION", "3"))
SUBJECT_DATA_DIR = Path(os.getenv("SUBJECT_DATA_DIR", str(SAMPLE_DATA_DIR)))
SUBJECT_MAPPING_FILE = SUBJECT_DATA_DIR / "subject_type_and_general_scaling.csv"
APPLIED_VET_SCALING_FILE = SUBJECT_DATA_DIR / "applied_and_vet_scaling.csv"
SET_PLAN_FILE = SUBJECT_DATA_DIR / "set_plan_percentiles.csv"
# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("matplotlib.font_manager").setLevel(logging.ERROR)

app = FastAPI(
    title=f"{APP_NAME} API",
    description=(
        "Scaled score comparison — parse and range raw results, chart scaled "
        "scores on a shared axis, and rank subject results."
    ),
    version="1.0.0",
)

# CORS for the frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Subject data is loaded once and shared read-only by every request
app.state.lookup = load_subject_lookup(SUBJECT_MAPPING_FILE)
app.state.oracle = load_scaling_oracle(app.state.lookup, APPLIED_VET_SCALING_FILE)
app.state.set_plan = load_set_plan_table(SET_PLAN_FILE)

# Register route modules
app.include_router(scaling_router, prefix="/api/scaling", tags=["Scaling"])
app.include_router(chart_router, prefix="/api/chart", tags=["Chart"])
app.include_router(cohort_router, prefix="/api/cohort", tags=["Cohort"])
app.include_router(reports_router, prefix="/api/reports", tags=["Reports"])
app.include_router(set_plan_router, prefix="/api/set-plan", tags=["SET Plan"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "app_name": APP_NAME,
        "subjects_loaded": len(app.state.lookup),
    }


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "app_name": APP_NAME,
        "default_result_variation": DEFAULT_RESULT_VARIATION,
    }
