from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from compass_gps.config import get_settings
from compass_gps.database import ping_database
from compass_gps.dependencies.services import api_cache, gps_store
from compass_gps.middleware.request_logging import request_logging_middleware
from compass_gps.routes import cache, gps, modem
from compass_gps.schemas.modem import HealthResponse
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("🚀 FastAPI starting up...")

    # The unique (modem_id, provider) index rejects out-of-order fixes; do not serve without it
    try:
        gps_store.ensure_indexes()
        api_cache.ensure_indexes()
        logger.info("✅ MongoDB indexes ready")
    except Exception as e:
        logger.error(f"🚨 MongoDB index setup failed: {e}")
        raise

    yield

    # Shutdown
    logger.info("🔄 FastAPI shutting down...")


app = FastAPI(lifespan=lifespan)

# Add CORS middleware first
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Retry-After"]
)

app.middleware("http")(request_logging_middleware)

# Include routers
app.include_router(gps.router)
app.include_router(modem.router)
app.include_router(cache.router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": jsonable_errors(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"🚨 Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


def jsonable_errors(exc: RequestValidationError):
    return [{"loc": list(err.get("loc", [])), "msg": err.get("msg")} for err in exc.errors()]


@app.get("/")
def read_root():
    return {"message": "Server is running"}


@app.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
def health_check():
    """Health check: reports whether MongoDB answers a ping."""
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        ping_database()
    except Exception as e:
        logger.error(f"🔴 Database connection error: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(e),
                "timestamp": timestamp,
            },
        )

    return {
        "status": "healthy",
        "database": "connected",
        "timestamp": timestamp,
    }
