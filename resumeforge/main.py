import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from resumeforge.core.config import CORS_ORIGINS, LOG_LEVEL, RUN_MIGRATIONS
from resumeforge.core.logging_config import setup_logging
from resumeforge.db.init_db import init_db
from resumeforge.db.migrate import run_migrations

# ✅ Import All API Routes
from resumeforge.api.routes import ai, billing, credits, health

setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

def prepare_database():
    if RUN_MIGRATIONS:
        run_migrations()
    else:
        init_db()


@asynccontextmanager
async def lifespan(app: FastAPI):
    prepare_database()
    yield


app = FastAPI(title="ResumeForge API", lifespan=lifespan)


# ✅ CORS: ONLY ALLOW THE FRONTEND
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type", "Stripe-Signature"],
)


# ============================================
# ✅ MALFORMED BODIES ARE 400, NOT 422
# ============================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.debug(f"Malformed request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Malformed request body", "details": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(health.router)
app.include_router(credits.router)
app.include_router(credits.plans_router)
app.include_router(billing.router)
app.include_router(ai.router)


@app.get("/")
def root():
    return {"status": "ResumeForge API running"}
