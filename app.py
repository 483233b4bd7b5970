import os
import logging
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool
from dotenv import load_dotenv

from logging_config import setup_logging
from services.pdf_service import get_pdf_service, set_pdf_service
from services.errors import StorageError
from routers import files, system

# Load env
load_dotenv(override=True)

setup_logging()
logger = logging.getLogger(__name__)

# Configuration
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup: list the bucket once and build the ordering index.
    try:
        if await run_in_threadpool(get_pdf_service) is None:
            logger.warning("Cloudflare R2 is not configured; file routes will answer 400")
    except StorageError:
        logger.exception("Could not build the file index at startup; retrying on first request")
    yield
    # Shutdown
    set_pdf_service(None)


app = FastAPI(title="PDF Management Service", lifespan=lifespan)

# CORS Configuration
# Parse origins from environment variable (comma-separated)
if CORS_ORIGINS == "*":
    origins = ["*"]
else:
    origins = [origin.strip() for origin in CORS_ORIGINS.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True if CORS_ORIGINS != "*" else False,  # Don't allow credentials with wildcard
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include Routers
app.include_router(system.router)
app.include_router(files.router)

if __name__ == "__main__":
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host=host, port=port)
