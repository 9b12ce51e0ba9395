from __future__ import annotations

from pydantic import BaseModel, Field


class InvokeRequest(BaseModel):
    text: str = Field(..., description="Raw chat message, starting with a provider prefix")


class ReplyEnvelope(BaseModel):
    text: str
    ai_generated: bool = False


class InvokeResponse(BaseModel):
    replies: list[ReplyEnvelope]


class HealthResponse(BaseModel):
    status: str = "ok"
