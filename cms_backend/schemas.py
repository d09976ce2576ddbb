"""
Pydantic schemas for request bodies and response envelopes.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class ItemResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: Any = None
    language: Optional[str] = None


class ListResponse(BaseModel):
    success: bool = True
    count: int
    data: list[Any]
    language: Optional[str] = None


class PagedListResponse(ListResponse):
    total: int
    page: int
    pages: int


class UploadManyResponse(BaseModel):
    success: bool = True
    message: str
    count: int
    data: list[Any]
    errors: Optional[list[dict]] = None


class HealthResponse(BaseModel):
    message: str


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = Field(default=None, max_length=256)


class UserSummary(BaseModel):
    id: str
    name: Optional[str] = None
    email: str


class LoginResponse(BaseModel):
    success: bool = True
    message: str
    token: str
    user: UserSummary
