"""Request/response schemas for profiles and projects."""

from __future__ import annotations

from datetime import datetime
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    offset: int
    limit: int


# --- Profiles ----------------------------------------------------------------

class ProfileOut(BaseModel):
    id: UUID
    email: str
    display_name: str | None
    created_at: datetime


# --- People ------------------------------------------------------------------

class PersonCreate(BaseModel):
    name: str
    email: str | None = None


class ContactCreate(PersonCreate):
    role: str | None = None


class ClientOut(BaseModel):
    id: UUID
    name: str
    email: str | None


class ContactOut(ClientOut):
    role: str | None


# --- Projects ----------------------------------------------------------------

class ProjectCreate(BaseModel):
    name: str


class ProjectOut(BaseModel):
    id: UUID
    name: str
    created_at: datetime


class ProjectDetail(ProjectOut):
    """Project with the people its correspondence is filtered by."""
    clients: list[ClientOut]
    contacts: list[ContactOut]
