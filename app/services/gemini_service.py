"""Outbound calls to the Gemini generateContent API"""
import time
from typing import Dict, Optional, Tuple

import httpx

from app.core.config import settings
from app.models.schemas import GenerateResponse, KeyTestResult, UsageOutcome
from app.services.keys.service import GeminiKeysService
from app.utils.exceptions import GeminiAPIError
from app.utils.logger import get_logger

logger = get_logger("gemini")

TEST_PROMPT = "Hello, can you respond with a simple greeting?"
GENERATE_ENDPOINT = "/gemini/generate"

UPSTREAM_ERROR_MESSAGES = {
    400: "Invalid request to Gemini API",
    401: "Invalid API key for Gemini",
    403: "Access forbidden to Gemini API",
    429: "Rate limit exceeded for Gemini API",
    500: "Gemini API server error",
}


class GeminiClient:
    """
    Minimal async client for ``models/{model}:generateContent``.

    The key is sent in the ``x-goog-api-key`` header so it never appears in
    request URLs or logs.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.GEMINI_API_BASE_URL).rstrip("/")
        self.model = model or settings.GEMINI_MODEL
        self._http = httpx.AsyncClient(
            timeout=timeout or settings.GEMINI_TIMEOUT_SECONDS,
            transport=transport
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def generate_content(
        self,
        api_key: str,
        prompt: str,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None
    ) -> Tuple[str, Optional[str], int]:
        """
        Send one prompt.

        Returns:
            Generated text, finish reason and total token count

        Raises:
            GeminiAPIError: on upstream error status, network error or an
                unexpected response shape
        """
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature if temperature is not None else 0.7,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": max_output_tokens or 2048,
            }
        }

        try:
            response = await self._http.post(
                f"{self.base_url}/{self.model}:generateContent",
                json=body,
                headers={"x-goog-api-key": api_key}
            )
        except httpx.HTTPError as e:
            raise GeminiAPIError("Network error when calling Gemini API", status_code=503) from e

        if response.status_code >= 400:
            status_code = response.status_code
            message = UPSTREAM_ERROR_MESSAGES.get(status_code, f"Gemini API error: {status_code}")
            raise GeminiAPIError(message, status_code=status_code, upstream_status=status_code)

        try:
            data: Dict = response.json()
            candidate = data["candidates"][0]
            text = candidate["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GeminiAPIError("Invalid response format from Gemini API") from e

        tokens = int((data.get("usageMetadata") or {}).get("totalTokenCount", 0))
        return text, candidate.get("finishReason"), tokens


class GeminiService:
    """
    Gemini calls with key rotation and usage accounting.

    Features:
    - Round-robin upstream key per call
    - Usage recorded against both the key and the calling user
    - Every generate call kept in the request history
    - Per-key connectivity test for the admin panel
    """

    def __init__(self, keys: GeminiKeysService, client: GeminiClient):
        self.keys = keys
        self.client = client

    async def generate(
        self,
        prompt: str,
        user_id: str,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        username: Optional[str] = None
    ) -> GenerateResponse:
        record = await self.keys.select_key_for_call()
        logger.info(f"Gemini request from {user_id} via key {record.id} ({len(prompt)} chars)")

        start_time = time.time()
        try:
            text, finish_reason, tokens = await self.client.generate_content(
                record.key, prompt, temperature, max_output_tokens
            )
        except GeminiAPIError as e:
            elapsed_ms = int((time.time() - start_time) * 1000)
            await self.keys.record_usage(
                record.id, user_id,
                UsageOutcome(success=False, response_time_ms=elapsed_ms, model=self.client.model)
            )
            await self.keys.request_log.log(
                GENERATE_ENDPOINT, e.status_code, prompt,
                error=str(e), user_id=user_id, username=username, model=self.client.model,
                response_time_ms=elapsed_ms, key=record
            )
            raise

        elapsed_ms = int((time.time() - start_time) * 1000)
        await self.keys.record_usage(
            record.id, user_id,
            UsageOutcome(success=True, tokens=tokens, response_time_ms=elapsed_ms, model=self.client.model)
        )
        await self.keys.request_log.log(
            GENERATE_ENDPOINT, 200, prompt,
            response=text, user_id=user_id, username=username, model=self.client.model,
            tokens=tokens, response_time_ms=elapsed_ms, key=record
        )

        logger.info(f"Gemini request completed in {elapsed_ms}ms ({tokens} tokens)")
        return GenerateResponse(
            prompt=prompt,
            response=text,
            model=self.client.model,
            finish_reason=finish_reason,
            tokens=tokens,
            processing_time_ms=elapsed_ms
        )

    async def test_key(self, key_id: str) -> KeyTestResult:
        """Call Gemini with one specific key, bypassing rotation"""
        record = await self.keys.get_key(key_id, reveal=True)

        start_time = time.time()
        try:
            await self.client.generate_content(record.key, TEST_PROMPT)
            success, detail = True, "Key is working"
        except GeminiAPIError as e:
            success, detail = False, str(e)
        elapsed_ms = int((time.time() - start_time) * 1000)

        await self.keys.record_usage(
            record.id, None,
            UsageOutcome(success=success, response_time_ms=elapsed_ms, model=self.client.model)
        )

        logger.info(f"Key test {key_id}: {'ok' if success else detail}")
        return KeyTestResult(key_id=key_id, success=success, response_time_ms=elapsed_ms, detail=detail)
