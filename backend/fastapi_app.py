from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
import os

from backend.database.schema import init_metadata_schema
from backend.modules.common.exceptions import AppError
from backend.modules.logger import error, info
from backend.modules.portals.fastapi_portals import router as portals_router
from backend.modules.sources.fastapi_sources import router as sources_router

load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_metadata_schema()
    info("Metadata schema ready")
    yield


app = FastAPI(title="BI Portal Backend (FastAPI)", version="1.0.0", lifespan=lifespan)

# Exact origins are required when credentials are allowed
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
        if origin.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler.
    Logs the error and returns a generic response.
    """
    error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "An unexpected error occurred"},
    )


@app.get("/health")
async def health_check():
    """
    Simple health check endpoint used for smoke testing the FastAPI app.
    """
    return {"status": "ok"}


@app.get("/")
async def root():
    return {"status": "ok", "message": "BI Portal Backend (FastAPI) is running", "health": "/health"}


app.include_router(portals_router, prefix="/api/v3/dashboardPortals")
app.include_router(sources_router, prefix="/api/v3/sources")


# Run with:
#       uvicorn backend.fastapi_app:app --reload --host 0.0.0.0 --port 8000
