"""
Memory extraction and inspection routes.

Endpoints:
- POST /users/{user_id}/memories/extract   Run extraction over pending messages
- GET  /users/{user_id}/memories           List a user's memories
"""

import time

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...db.database import get_db
from ...db.memories import count_memories, list_memories
from ...engine.pipeline import MemoryExtractor, get_memory_extractor
from ..models.responses import (
    ExtractionData,
    ExtractionResponse,
    MemoryData,
    MemoryListResponse,
    PaginationMeta,
    ResponseMeta,
)

router = APIRouter(prefix="/users/{user_id}/memories", tags=["Memories"])


def get_extractor() -> MemoryExtractor:
    """Dependency returning the process-wide extractor."""
    return get_memory_extractor()


def build_response_meta(request: Request) -> ResponseMeta:
    """Build standard response metadata."""
    start_time = getattr(request.state, "start_time", time.time())
    return ResponseMeta(
        request_id=getattr(request.state, "request_id", "unknown"),
        processing_time_ms=int((time.time() - start_time) * 1000),
    )


@router.post(
    "/extract",
    response_model=ExtractionResponse,
    status_code=status.HTTP_200_OK,
    summary="Extract memories",
    description="Extract facts from the user's pending messages and merge them into memory.",
)
async def extract_user_memories(
    request: Request,
    user_id: str,
    extractor: MemoryExtractor = Depends(get_extractor),
):
    """Run one extraction pass for the user."""
    stats = await extractor.extract_memory(user_id)

    return ExtractionResponse(
        data=ExtractionData(**stats.to_dict()),
        meta=build_response_meta(request),
    )


@router.get(
    "",
    response_model=MemoryListResponse,
    summary="List memories",
    description="List a user's memories, newest first.",
)
async def list_user_memories(
    request: Request,
    user_id: str,
    page: int = Query(default=1, ge=1, description="Page number"),
    per_page: int = Query(default=50, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_db),
):
    """List memories with pagination."""
    total = await count_memories(db, user_id)
    memories = await list_memories(db, user_id, limit=per_page, offset=(page - 1) * per_page)

    total_pages = (total + per_page - 1) // per_page

    return MemoryListResponse(
        data=[
            MemoryData(
                id=m.id,
                content=m.content,
                prev_content=m.prev_content,
                category=m.category,
                importance=m.importance,
                confidence=m.confidence,
                action=m.action,
                created_at=m.created_at,
                updated_at=m.updated_at,
            )
            for m in memories
        ],
        pagination=PaginationMeta(
            total=total,
            page=page,
            per_page=per_page,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
        meta=build_response_meta(request),
    )
