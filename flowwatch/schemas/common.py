"""Common schemas used across the API."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    scheduler_running: bool = False


class RootResponse(BaseModel):
    """Root endpoint response."""

    name: str
    version: str
    status: str
