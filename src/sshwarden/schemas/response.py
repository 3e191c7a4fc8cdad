"""Uniform response envelope returned by every API route."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    success: bool
    data: T | None = None
    error: str | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> APIResponse[T]:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> APIResponse[T]:
        return cls(success=False, error=error)
