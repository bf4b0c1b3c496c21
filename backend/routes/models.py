"""Pydantic request/response models for API endpoints."""

from pydantic import BaseModel


class SendMessageBody(BaseModel):
    character_id: str
    message: str
    conversation_id: str | None = None


class SwitchProviderBody(BaseModel):
    provider: str
    model: str | None = None


class SwitchProviderResult(BaseModel):
    success: bool
    message: str
    backend: str
    model: str
