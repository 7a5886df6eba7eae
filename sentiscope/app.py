import logging
import time
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sentiscope import config
from sentiscope.errors import AppError
from sentiscope.routes import analysis, auth, datasets, upload, users
from sentiscope.services.db_service import init_db

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

app = FastAPI(title="SentiScope API", version=API_VERSION)


@app.on_event("startup")
def _startup():
    init_db()
    logger.info("SentiScope API started")


# === Allow frontend ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s %d %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


# === Error handling ===
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in err["loc"][1:]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"success": False, "message": "Validation failed", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


@app.get("/health")
def health():
    return {"success": True, "message": "Server is running", "timestamp": datetime.utcnow().isoformat()}


@app.get("/api")
def api_info():
    return {
        "success": True,
        "message": "SentiScope API",
        "data": {
            "version": API_VERSION,
            "endpoints": {
                "auth": "/api/auth",
                "users": "/api/users",
                "analysis": "/api/analysis",
                "datasets": "/api/datasets",
            },
        },
    }


# === Routes ===
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(analysis.router)
app.include_router(upload.router)
app.include_router(datasets.router)
