"""
Pydantic response models for consistent API responses.

All API responses follow a standard format:
{
    "success": true/false,
    "data": { ... } or null,
    "error": { ... } or null,
    "meta": { ... }
}
"""

from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Meta Objects
# =============================================================================

class PaginationMeta(BaseModel):
    """Pagination metadata for list endpoints."""
    total: int = Field(..., description="Total number of items")
    page: int = Field(..., description="Current page number (1-indexed)")
    per_page: int = Field(..., description="Items per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there are more pages")
    has_prev: bool = Field(..., description="Whether there are previous pages")


class ResponseMeta(BaseModel):
    """Standard response metadata."""
    request_id: str = Field(..., description="Unique request identifier")
    processing_time_ms: int = Field(..., description="Request processing time in milliseconds")


# =============================================================================
# Error Response
# =============================================================================

class ErrorDetail(BaseModel):
    """Detailed error information."""
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[dict[str, Any]] = Field(default=None, description="Additional error details")


class ErrorResponse(BaseModel):
    """Standard error response format."""
    success: bool = Field(default=False)
    data: None = None
    error: ErrorDetail
    meta: Optional[ResponseMeta] = None


# =============================================================================
# Extraction
# =============================================================================

class ExtractionData(BaseModel):
    """Counts from one extraction run."""
    facts_extracted: int = Field(..., description="Facts the model extracted from pending messages")
    memories_added: int = Field(..., description="New memories inserted")
    memories_updated: int = Field(..., description="Existing memories revised")
    messages_extracted: int = Field(..., description="Messages marked as extracted")


class ExtractionResponse(BaseModel):
    """Response for an extraction run."""
    success: bool = True
    data: ExtractionData
    error: None = None
    meta: ResponseMeta


# =============================================================================
# Memories
# =============================================================================

class MemoryData(BaseModel):
    """Single memory, without its embedding."""
    id: int
    content: Optional[str] = None
    prev_content: Optional[str] = None
    category: Optional[str] = None
    importance: Optional[float] = None
    confidence: Optional[float] = None
    action: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MemoryListResponse(BaseModel):
    """Paginated list of memories."""
    success: bool = True
    data: list[MemoryData]
    error: None = None
    pagination: PaginationMeta
    meta: ResponseMeta


# =============================================================================
# Health
# =============================================================================

class HealthData(BaseModel):
    """Health check data."""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    database: str = Field(..., description="Database connection status")


class HealthResponse(BaseModel):
    """Health check response."""
    success: bool = True
    data: HealthData
    error: None = None
