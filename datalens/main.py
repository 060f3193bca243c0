"""
DataLens - Backend API
FastAPI application entry point
"""
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from datalens.config import settings
from datalens.exceptions import DataLensException, SourceUnreadableError
from datalens.routers import analysis_router, datasets_router


# Configure logging
logger.remove()
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level="DEBUG" if settings.DEBUG else "INFO"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown"""
    settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    sink_id = logger.add(
        settings.LOGS_DIR / "datalens_{time}.log",
        rotation="500 MB",
        retention="10 days",
        level="DEBUG"
    )
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")
    logger.info(f"Upload limit: {settings.MAX_UPLOAD_SIZE_MB}MB")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    logger.remove(sink_id)


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Dataset profiling, cleaning and quality scoring",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DataLensException)
async def datalens_exception_handler(request: Request, exc: DataLensException):
    """Structured error body for errors raised outside the routers"""
    status_code = 422 if isinstance(exc, SourceUnreadableError) else 400
    logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": {"message": exc.message, "details": exc.details}},
    )


# Include routers
app.include_router(datasets_router, prefix="/api")
app.include_router(analysis_router, prefix="/api")


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API info"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "datalens.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
