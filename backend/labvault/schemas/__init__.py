"""Shared schema utilities."""

from pydantic import BaseModel, Field


class Actor(BaseModel):
    """Identity stamped onto every mutation and audit entry."""
    id: str = Field(min_length=1, max_length=128)
    email: str | None = Field(default=None, max_length=255)
