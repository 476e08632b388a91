from datetime import datetime, UTC
from sqlmodel import SQLModel, Field


class UserProfile(SQLModel, table=True):
    """Identity-sync mirror; the engine only reads it."""
    __tablename__ = "users"

    id: str = Field(primary_key=True, max_length=128)
    display_name: str = Field(default="", max_length=100)
    avatar_url: str = Field(default="", max_length=500)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
