"""Admin endpoints over the Gemini request history"""
from fastapi import APIRouter, Depends, Query
from typing import Dict, Optional
from app.models.schemas import RequestHistoryPage, RequestStatus
from app.core.dependencies import get_keys_service
from app.core.security import require_admin
from app.services.keys.service import GeminiKeysService

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get(
    "/requests",
    response_model=RequestHistoryPage,
    summary="Request History",
    description="Logged Gemini calls of all users, newest first"
)
async def get_requests(
    user_id: Optional[str] = Query(default=None, description="Only calls made by this user"),
    status: Optional[RequestStatus] = Query(default=None, description="Only successful or failed calls"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    admin: Dict = Depends(require_admin),
    keys: GeminiKeysService = Depends(get_keys_service)
):
    """
    Page through the request history.

    **Authentication:** Requires an admin Bearer token.

    Only the most recent 10000 calls are kept.
    """
    return await keys.request_history(user_id=user_id, status=status, limit=limit, offset=offset)
