"""Admin endpoints for managing the upstream Gemini API keys"""
from fastapi import APIRouter, Depends, status
from typing import Dict
from app.models.schemas import (
    AddKeyRequest,
    KeyListResponse,
    KeyRecord,
    KeyTestResult,
    ToggleKeyRequest,
    UsageScope,
    UsageStatsResponse
)
from app.core.dependencies import get_gemini_service, get_keys_service
from app.core.security import require_admin
from app.services.gemini_service import GeminiService
from app.services.keys.service import GeminiKeysService
from app.utils.logger import logger

router = APIRouter(prefix="/admin/gemini-keys", tags=["Admin: Gemini Keys"])


@router.get("", response_model=KeyListResponse, summary="List Gemini Keys")
async def list_keys(
    admin: Dict = Depends(require_admin),
    keys: GeminiKeysService = Depends(get_keys_service)
):
    """
    List stored and environment keys with secrets redacted.

    Environment keys that are not in the store are listed with source `env`.
    """
    return KeyListResponse(keys=await keys.list_keys(), summary=await keys.summary())


@router.post(
    "",
    response_model=KeyRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Add Gemini Key"
)
async def add_key(
    body: AddKeyRequest,
    admin: Dict = Depends(require_admin),
    keys: GeminiKeysService = Depends(get_keys_service)
):
    """
    Store a new Gemini key.

    **Errors:** 400 blank key, 409 duplicate key, 503 store unavailable.
    """
    record = await keys.add_key(body.key, name=body.name, active=body.active)
    logger.info(f"Gemini key {record.id} added by {admin['sub']}")
    return record


@router.delete("/{key_id}", summary="Remove Gemini Key")
async def remove_key(
    key_id: str,
    admin: Dict = Depends(require_admin),
    keys: GeminiKeysService = Depends(get_keys_service)
):
    """Remove a stored key and its usage statistics"""
    await keys.remove_key(key_id)
    logger.info(f"Gemini key {key_id} removed by {admin['sub']}")
    return {"message": "API key removed successfully", "id": key_id}


@router.patch("/{key_id}/toggle", response_model=KeyRecord, summary="Enable or Disable Gemini Key")
async def toggle_key(
    key_id: str,
    body: ToggleKeyRequest,
    admin: Dict = Depends(require_admin),
    keys: GeminiKeysService = Depends(get_keys_service)
):
    """Set the active flag of a stored key"""
    record = await keys.toggle_key(key_id, body.active)
    logger.info(f"Gemini key {key_id} set active={body.active} by {admin['sub']}")
    return record


@router.get("/{key_id}/stats", response_model=UsageStatsResponse, summary="Get Gemini Key Usage")
async def get_key_stats(
    key_id: str,
    admin: Dict = Depends(require_admin),
    keys: GeminiKeysService = Depends(get_keys_service)
):
    """Usage statistics of one key, including its error rate"""
    stats = await keys.get_stats(key_id)
    return UsageStatsResponse.from_stats(UsageScope.KEY, key_id, stats)


@router.post("/{key_id}/test", response_model=KeyTestResult, summary="Test Gemini Key")
async def test_key(
    key_id: str,
    admin: Dict = Depends(require_admin),
    gemini: GeminiService = Depends(get_gemini_service)
):
    """Send a short prompt to Gemini with this key only"""
    return await gemini.test_key(key_id)
