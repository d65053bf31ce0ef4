"""Pydantic schemas for stored records and request/response validation"""
from pydantic import BaseModel, Field, validator
from typing import List, Optional, Dict
from datetime import datetime, timezone
from enum import Enum


KEY_PREVIEW_LENGTH = 8


class KeySource(str, Enum):
    """Where a Gemini key record came from"""
    ADMIN = "admin"
    ENV = "env"
    MIGRATED = "migrated"


class UsageScope(str, Enum):
    """Owner type of a usage stats record"""
    KEY = "key"
    USER = "user"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def preview_secret(secret: str) -> str:
    """Redact a secret down to its first characters"""
    if not secret:
        return ""
    return f"{secret[:KEY_PREVIEW_LENGTH]}..."


class KeyRecord(BaseModel):
    """A Gemini API key as persisted in the key list"""
    id: str = Field(..., description="Unique key id")
    key: str = Field(..., description="Secret, or its preview when redacted")
    name: str = Field(..., description="Display name")
    active: bool = Field(default=True, description="Eligible for selection")
    source: KeySource = Field(default=KeySource.ADMIN, description="Origin of the record")
    created_at: datetime = Field(default_factory=utc_now)
    last_used: Optional[datetime] = Field(default=None)
    request_count: int = Field(default=0, ge=0)

    def redacted(self) -> "KeyRecord":
        return self.model_copy(update={"key": preview_secret(self.key)})


class UsageStats(BaseModel):
    """Accumulated usage for one key or one user"""
    total_requests: int = 0
    total_tokens: int = 0
    success_count: int = 0
    fail_count: int = 0
    avg_response_time: float = 0.0
    daily_buckets: List[int] = Field(default_factory=lambda: [0] * 7)
    hourly_buckets: List[int] = Field(default_factory=lambda: [0] * 24)
    usage_by_model: Dict[str, int] = Field(default_factory=dict)
    last_used: Optional[datetime] = None

    @property
    def error_rate(self) -> float:
        """Failure percentage, 0.0 when nothing has been recorded"""
        attempts = self.success_count + self.fail_count
        if attempts == 0:
            return 0.0
        return self.fail_count / attempts * 100


class UsageOutcome(BaseModel):
    """Outcome of a single outbound call"""
    success: bool
    tokens: int = Field(default=0, ge=0)
    response_time_ms: int = Field(default=0, ge=0)
    model: Optional[str] = None


class UsageStatsResponse(BaseModel):
    """Usage stats with derived figures"""
    subject_id: str
    scope: UsageScope
    stats: UsageStats
    error_rate: float = Field(..., description="Failed calls as a percentage of all calls")

    @classmethod
    def from_stats(cls, scope: UsageScope, subject_id: str, stats: UsageStats) -> "UsageStatsResponse":
        return cls(subject_id=subject_id, scope=scope, stats=stats, error_rate=stats.error_rate)


class AddKeyRequest(BaseModel):
    """Admin request to store a new Gemini key"""
    key: str = Field(..., description="Gemini API key secret", example="AIzaSy...")
    name: Optional[str] = Field(default=None, max_length=100, example="Primary")
    active: bool = Field(default=True)


class ToggleKeyRequest(BaseModel):
    """Admin request to enable or disable a key"""
    active: bool = Field(..., description="New active flag")


class KeySummary(BaseModel):
    """Aggregate view over all known keys"""
    total: int
    active: int
    inactive: int
    store_keys: int
    env_keys: int
    total_requests: int
    store_available: bool


class KeyListResponse(BaseModel):
    """Admin key listing"""
    keys: List[KeyRecord]
    summary: KeySummary


class KeyTestResult(BaseModel):
    """Result of probing Gemini with one stored key"""
    key_id: str
    success: bool
    response_time_ms: int
    detail: str


class GenerateRequest(BaseModel):
    """Prompt submitted to Gemini"""
    prompt: str = Field(
        ...,
        min_length=1,
        max_length=30000,
        description="Prompt text",
        example="Explain round-robin scheduling in two sentences."
    )
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_output_tokens: Optional[int] = Field(default=None, ge=1, le=8192)

    @validator('prompt')
    def validate_prompt(cls, v):
        if not v or not v.strip():
            raise ValueError("Prompt cannot be empty or whitespace only")
        return v.strip()


class GenerateResponse(BaseModel):
    """Gemini completion"""
    prompt: str
    response: str
    model: str
    finish_reason: Optional[str] = None
    tokens: int = 0
    processing_time_ms: int
    timestamp: datetime = Field(default_factory=utc_now)


class RequestStatus(str, Enum):
    """Outcome of a logged Gemini call"""
    SUCCESS = "success"
    ERROR = "error"


class RequestLogEntry(BaseModel):
    """One Gemini call in the request history; texts are stored truncated"""
    id: str
    timestamp: datetime = Field(default_factory=utc_now)
    user_id: Optional[str] = None
    username: Optional[str] = None
    endpoint: str
    status: RequestStatus
    status_code: int
    response_time_ms: int = Field(default=0, ge=0)
    model: Optional[str] = None
    tokens: int = Field(default=0, ge=0)
    prompt: str = ""
    response: Optional[str] = None
    error: Optional[str] = None
    key_id: Optional[str] = None
    key_preview: Optional[str] = None


class RequestHistoryPage(BaseModel):
    """A page of request history, newest first"""
    entries: List[RequestLogEntry]
    total: int = Field(..., description="Entries matching the filters")
    limit: int
    offset: int


class HealthCheck(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    store_connected: bool = Field(..., description="Whether the key-value store is reachable")
    fallback_keys: int = Field(..., description="Number of keys loaded from the environment")
    version: str = Field(..., description="API version")


class TokenRequest(BaseModel):
    """JWT token request"""
    username: str = Field(..., min_length=3, example="demo_user")
    password: str = Field(..., min_length=6, example="demo_password")


class TokenResponse(BaseModel):
    """JWT token response"""
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Token expiration time in seconds")


class ErrorResponse(BaseModel):
    """Error response schema"""
    error: str = Field(..., description="Error type")
    detail: str = Field(..., description="Error details")
    path: str = Field(..., description="Request path")
    timestamp: datetime = Field(default_factory=utc_now, description="Error timestamp")
