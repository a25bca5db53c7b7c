"""
Contract Extraction Service - Main Application
FastAPI Entry Point
"""

from fastapi import FastAPI
from fastapi.responses import JSONResponse
import structlog

from contractlens.config import settings
from contractlens.middleware import CorrelationIdMiddleware
from contractlens.routers import extractions_router
from contractlens.services.extraction import get_pdf_engine, shutdown_pdf_engine, PdfWorkerUnavailable
from contractlens.services.monitoring import setup_logging, get_ocr_breaker

# Structured Logging Setup
setup_logging()
logger = structlog.get_logger()

# FastAPI App
app = FastAPI(
    title="Contract Extraction Service",
    description="Text extraction from uploaded contracts (PDF, DOCX, images) for risk analysis",
    version="0.1.0",
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None,
)

app.add_middleware(CorrelationIdMiddleware)

# Register routers
app.include_router(extractions_router)


@app.on_event("startup")
async def startup_event():
    """Application Startup"""
    logger.info("startup", environment=settings.environment)

    # Warm the PDF worker so the first upload does not pay for it
    try:
        get_pdf_engine()
    except PdfWorkerUnavailable as e:
        logger.error("pdf_engine_unavailable", error=str(e))


@app.on_event("shutdown")
async def shutdown_event():
    """Application Shutdown"""
    logger.info("shutdown")
    shutdown_pdf_engine()


@app.get("/")
async def root():
    """Root Endpoint"""
    return {
        "message": "Contract Extraction Service API",
        "version": "0.1.0",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """
    Health Check Endpoint
    Reports whether the PDF engine and OCR service are usable
    """
    try:
        get_pdf_engine()
        pdf_status = "running"
    except PdfWorkerUnavailable:
        pdf_status = "unavailable"

    breaker = get_ocr_breaker()
    health_status = {
        "status": "healthy" if pdf_status == "running" else "degraded",
        "environment": settings.environment,
        "services": {
            "api": "running",
            "pdf_engine": pdf_status,
            "ocr": "configured" if settings.anthropic_api_key else "not_configured",
            "ocr_circuit": breaker.current_state,
        }
    }

    return JSONResponse(
        content=health_status,
        status_code=200
    )
