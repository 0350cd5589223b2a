"""Common DTOs for API responses and error handling."""
from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str = Field(..., description="Error message describing what went wrong", example="User not found")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Health status", example="healthy")


class RootResponse(BaseModel):
    """Root endpoint response model."""
    status: str = Field(..., description="API status", example="ok")
    service: str = Field(..., description="Service name", example="profilekit-backend")
    version: str = Field(..., description="API version", example="0.1.0")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform result returned by every client operation.

    ``data`` always holds a value of the expected shape, except for a
    ``get`` that hit a 404, where it is ``None``.
    """
    data: T
    success: bool
    message: str = ""
