"""FastAPI dependencies resolving the per-application services"""
from fastapi import Request

from app.services.gemini_service import GeminiService
from app.services.keys.service import GeminiKeysService


def get_keys_service(request: Request) -> GeminiKeysService:
    return request.app.state.gemini_keys


def get_gemini_service(request: Request) -> GeminiService:
    return request.app.state.gemini
