"""
Application Configuration
"""

from pydantic import BaseModel
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Environment
    environment: str = "development"
    service_name: str = "contractlens-extraction"

    # LLM (OCR via Claude Vision)
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    ocr_max_tokens: int = 8192

    # OCR retry policy
    ocr_max_attempts: int = 3
    ocr_backoff_seconds: float = 1.0
    ocr_backoff_jitter_seconds: float = 0.25
    ocr_max_image_size_kb: int = 5000  # downscale before upload above this

    # Cost Control
    max_ocr_tokens_per_extraction: int = 100000

    # Extraction limits
    # USER DECISION: 30 pages keeps mobile uploads responsive
    page_cap: int = 30
    batch_size: int = 3
    batch_yield_seconds: float = 0.01
    max_text_length: int = 300000
    max_file_size_bytes: int = 10 * 1024 * 1024
    scanned_pdf_min_chars: int = 50
    preview_length: int = 1000
    extraction_timeout_seconds: float = 45.0

    # Circuit Breaker Configuration
    circuit_breaker_fail_max: int = 5  # Consecutive failures before opening circuit
    circuit_breaker_reset_timeout: int = 60  # Seconds before auto-recovery attempt

    class Config:
        env_file = ".env"
        case_sensitive = False


class ExtractionLimits(BaseModel):
    """
    Numeric bounds applied to a single extraction call.

    Snapshotted from Settings by default; an orchestrator may be built with
    its own limits (tests, per-deployment tuning).
    """

    page_cap: int = 30
    batch_size: int = 3
    batch_yield_seconds: float = 0.01
    max_text_length: int = 300000
    max_file_size_bytes: int = 10 * 1024 * 1024
    scanned_pdf_min_chars: int = 50
    preview_length: int = 1000
    timeout_seconds: float = 45.0

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "ExtractionLimits":
        source = source or settings
        return cls(
            page_cap=source.page_cap,
            batch_size=source.batch_size,
            batch_yield_seconds=source.batch_yield_seconds,
            max_text_length=source.max_text_length,
            max_file_size_bytes=source.max_file_size_bytes,
            scanned_pdf_min_chars=source.scanned_pdf_min_chars,
            preview_length=source.preview_length,
            timeout_seconds=source.extraction_timeout_seconds,
        )


settings = Settings()
