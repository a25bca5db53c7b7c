"""
Extraction API Router
Accepts a contract upload and returns its extracted text and metadata
"""

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse
import structlog

from contractlens.config import settings
from contractlens.middleware import get_correlation_id
from contractlens.models.extraction_result import ExtractedDocument, ExtractionRequest
from contractlens.services.extraction import (
    ExtractionError,
    ExtractionOrchestrator,
    get_orchestrator,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/extractions", tags=["extractions"])


@router.post("", response_model=ExtractedDocument)
async def create_extraction(
    file: UploadFile = File(..., description="PDF, DOCX, JPG or PNG contract"),
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
):
    """
    Extract text from an uploaded contract

    Reads at most one byte past the size ceiling, so oversized uploads are
    rejected without buffering them whole.

    Returns:
        ExtractedDocument (camelCase JSON) on success, or
        {"error", "message", "retryable", "correlation_id"} with the failure's HTTP status
    """
    data = await file.read(orchestrator.limits.max_file_size_bytes + 1)

    request = ExtractionRequest(
        data=data,
        mime_type=file.content_type,
        filename=file.filename or "",
    )

    try:
        document = await orchestrator.extract(request)
    except ExtractionError as e:
        logger.warning(
            "extraction_rejected",
            filename=request.filename,
            error=e.code,
            status_code=e.http_status,
        )
        content = e.to_dict()
        content["correlation_id"] = get_correlation_id()
        return JSONResponse(status_code=e.http_status, content=content)

    logger.info(
        "extraction_completed",
        filename=request.filename,
        environment=settings.environment,
        characters=document.metadata.characters_extracted,
    )
    return document
