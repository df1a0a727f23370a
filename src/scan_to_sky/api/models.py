"""Pydantic request models for the HTTP API."""

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Skylight credentials."""

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ProductEditRequest(BaseModel):
    """User corrections to a scanned product's display fields."""

    name: str | None = None
    brand: str | None = None
