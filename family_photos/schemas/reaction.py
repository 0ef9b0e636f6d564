from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from family_photos.services.reaction_service import ReactionOutcome


class ReactionRequest(BaseModel):
    emoji: str = Field(..., max_length=16)

    @field_validator("emoji")
    @classmethod
    def emoji_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("emoji must not be empty")
        return value


class ReactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    photo_id: UUID
    user_id: UUID
    emoji: str
    created_at: datetime
    updated_at: datetime


class ReactResponse(BaseModel):
    outcome: ReactionOutcome
    reaction: Optional[ReactionResponse] = None


class ReactionUser(BaseModel):
    user_id: UUID
    user_email: str


class ReactionSummary(BaseModel):
    emoji: str
    count: int
    users: list[ReactionUser] = []


class PhotoReactionsRequest(BaseModel):
    photo_ids: list[UUID] = Field(..., max_length=200)


class EmojiListResponse(BaseModel):
    emojis: list[str]
