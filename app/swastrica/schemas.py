"""Pydantic schemas for the router endpoint and internal pipeline contracts."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


Category = Literal["emergency", "medical-image", "medical-text", "general"]
RoutingReason = Literal["override", "emergency-shortcut", "image-present", "keyword-match", "default"]

MEDICAL_CATEGORIES: frozenset[str] = frozenset({"medical-image", "medical-text"})


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class RouterRequest(BaseModel):
    """JSON body accepted by `POST /ai-router`."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    conversation_history: list[ChatTurn] = Field(
        default_factory=list,
        validation_alias=AliasChoices("conversationHistory", "conversation_history"),
    )
    image_data: str | None = Field(
        default=None,
        validation_alias=AliasChoices("imageData", "image", "imageBase64", "image_data"),
    )
    image_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("imageType", "image_type"),
    )
    analysis_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("analysisType", "analysis_type"),
    )
    force_model: str | None = Field(
        default=None,
        validation_alias=AliasChoices("forceModel", "force_model"),
    )


class Query(BaseModel):
    """A validated caller query. Built once per request, never mutated."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    text: str
    image_b64: str | None = None
    image_type: str | None = None
    analysis_type: str | None = None
    history: tuple[ChatTurn, ...] = ()
    override: str | None = None
    caller_token: str | None = Field(default=None, repr=False)

    @property
    def has_image(self) -> bool:
        return bool(self.image_b64)


class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: Category
    matched_terms: tuple[str, ...] = ()
    emergency_type: str | None = None

    @property
    def is_emergency(self) -> bool:
        return self.category == "emergency"

    @property
    def is_medical(self) -> bool:
        return self.category in MEDICAL_CATEGORIES


class RoutingDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: str
    reason: RoutingReason
    category: Category
    apply_safety: bool


class BackendResult(BaseModel):
    text: str
    backend: str
    degraded: bool = False
    elapsed_ms: int = 0
    note: str | None = None
    attempts: list[str] = Field(default_factory=list)
    error_type: str | None = None


class FinalResponse(BaseModel):
    """Body returned to the client. Serialized with camelCase keys, nulls dropped."""

    response: str
    model: str
    is_emergency: bool | None = Field(default=None, serialization_alias="isEmergency")
    is_medical: bool | None = Field(default=None, serialization_alias="isMedical")
    has_disclaimer: bool | None = Field(default=None, serialization_alias="hasDisclaimer")
    degraded: bool | None = None
    note: str | None = None
    disclaimer: str | None = None
    emergency_type: str | None = Field(default=None, serialization_alias="emergencyType")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AuditRecord(BaseModel):
    timestamp: datetime
    request_id: str
    user_id: str | None = None

    category: Category
    query_type: str
    routing_reason: RoutingReason
    backend_used: str
    query_summary: str

    success: bool
    degraded: bool = False
    fallback_used: bool = False
    had_error: bool = False
    error_type: str | None = None

    is_emergency_detected: bool = False
    emergency_type: str | None = None
    disclaimer_shown: bool = False

    has_conversation_history: bool = False
    has_image: bool = False
    processing_time_ms: int = 0
    response_length: int = 0
