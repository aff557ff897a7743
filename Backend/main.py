import os
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from config import APP_NAME, CORS_ORIGINS, LOG_LEVEL
from database import Base, engine
import models  # noqa: F401  registers tables on Base.metadata
from routers import jobs_router
from services.tracing import configure_langfuse

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")

# Create all tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title=f"{APP_NAME} API",
    description="Medication stock, expiry and checkup notifications",
    version="1.0.0",
)

configure_langfuse()

logs_path = os.path.join(os.path.dirname(__file__), "logs")
os.makedirs(logs_path, exist_ok=True)
error_log_file = os.path.join(logs_path, "errors.log")
error_logger = logging.getLogger("medilog.errors")
if not error_logger.handlers:
    error_logger.setLevel(logging.ERROR)
    fh = logging.FileHandler(error_log_file, encoding="utf-8")
    fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    error_logger.addHandler(fh)
    error_logger.propagate = False

cors_origins = [o.strip() for o in CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(jobs_router)


@app.middleware("http")
async def _capture_unhandled_errors(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:  # pragma: no cover
        error_logger.exception("Unhandled server error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/", tags=["Health"])
def health_check():
    return {"status": "ok", "service": f"{APP_NAME} API", "version": "1.0.0"}
