"""
School Grades API — grade bookkeeping and report cards.
FastAPI backend entry point.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.errors import GradingError, ValidationError
from core.grading_policy import load_policy
from core.grading_service import GradingService
from core.store import GradingStore, create_client
from routes.grades import router as grades_router

# Load environment
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SCHOOL_NAME = os.getenv("SCHOOL_NAME", "MI CASITA")
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "school_grades")
# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]

POLICY = load_policy()


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = create_client(MONGO_URL)
    store = GradingStore(client[MONGO_DB])
    await store.ensure_indexes()
    app.state.grading_service = GradingService(store, POLICY, school_name=SCHOOL_NAME)
    logger.info("Connected to MongoDB database '%s'", MONGO_DB)
    yield
    client.close()


def _now_iso():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def add_error_handlers(app: FastAPI):
    @app.exception_handler(GradingError)
    async def grading_error_handler(request: Request, exc: GradingError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.to_dict(), "generated_at": _now_iso()},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=ValidationError.status_code,
            content={
                "success": False,
                "error": {
                    "code": ValidationError.code,
                    "message": "Invalid request",
                    "details": details,
                },
                "generated_at": _now_iso(),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": {"code": "INTERNAL_ERROR", "message": "Unexpected server error"},
                "generated_at": _now_iso(),
            },
        )


app = FastAPI(
    title="School Grades API",
    description="Bimester grade bookkeeping, academic summaries and report card PDFs.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_error_handlers(app)

# Register route modules
app.include_router(grades_router, prefix="/api/grades", tags=["Grades"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "school_name": SCHOOL_NAME,
    }


@app.get("/api/config")
async def get_config():
    """Return grading configuration to the frontend."""
    return {
        "school_name": SCHOOL_NAME,
        **POLICY.describe(),
    }
