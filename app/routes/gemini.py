"""Gemini generation endpoints"""
from fastapi import APIRouter, Depends, Query
from typing import Dict
from app.models.schemas import (
    GenerateRequest,
    GenerateResponse,
    RequestHistoryPage,
    UsageScope,
    UsageStatsResponse
)
from app.core.dependencies import get_gemini_service, get_keys_service
from app.core.security import verify_bearer_token
from app.services.gemini_service import GeminiService
from app.services.keys.service import GeminiKeysService
from app.utils.exceptions import RateLimitedError
from app.utils.logger import logger

router = APIRouter(prefix="/gemini", tags=["Gemini"])


@router.post(
    "/generate",
    response_model=GenerateResponse,
    summary="Generate Text with Gemini",
    description="Send a prompt to Gemini using the next rotating upstream key"
)
async def generate(
    input_data: GenerateRequest,
    user: Dict = Depends(verify_bearer_token),
    keys: GeminiKeysService = Depends(get_keys_service),
    gemini: GeminiService = Depends(get_gemini_service)
):
    """
    Generate a completion for a prompt.

    **Authentication:** Requires Bearer token in `Authorization` header.

    **Rate limiting:** each user is admitted until their request counter
    reaches the configured limit within the configured window.

    **Errors:**
    - 429 when the user is over the limit
    - 503 when no Gemini key is available
    - upstream Gemini errors are passed through with their status
    """
    user_id = user["sub"]

    decision = await keys.check_user_rate(user_id)
    if not decision.admitted:
        logger.warning(f"Gemini request rejected for {user_id}: {decision.reason}")
        raise RateLimitedError(decision.reason)

    return await gemini.generate(
        input_data.prompt,
        user_id=user_id,
        temperature=input_data.temperature,
        max_output_tokens=input_data.max_output_tokens,
        username=user.get("username")
    )


@router.get(
    "/stats",
    response_model=UsageStatsResponse,
    summary="Get My Gemini Usage",
    description="Usage statistics of the authenticated user"
)
async def get_my_stats(
    user: Dict = Depends(verify_bearer_token),
    keys: GeminiKeysService = Depends(get_keys_service)
):
    """
    Get the caller's accumulated Gemini usage.

    **Authentication:** Requires Bearer token in `Authorization` header.
    """
    stats = await keys.get_user_stats(user["sub"])
    return UsageStatsResponse.from_stats(UsageScope.USER, user["sub"], stats)


@router.get(
    "/history",
    response_model=RequestHistoryPage,
    summary="Get My Request History",
    description="Recent Gemini calls of the authenticated user, newest first"
)
async def get_my_history(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    user: Dict = Depends(verify_bearer_token),
    keys: GeminiKeysService = Depends(get_keys_service)
):
    """
    Page through the caller's logged Gemini calls.

    Prompts are kept truncated to 500 characters and responses to 1000.
    """
    return await keys.request_history(user_id=user["sub"], limit=limit, offset=offset)
