"""
Value objects describing probe targets and probe outcomes.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field


class TargetEndpoint(BaseModel):
    """A service base URL plus its health path."""

    model_config = {"frozen": True}

    name: str = Field(..., description="Human-readable service name")
    base_url: str = Field(..., description="Base URL without trailing slash")
    health_path: str = Field(default="/health")

    @property
    def health_url(self) -> str:
        return f"{self.base_url}{self.health_path}"

    def url(self, path: str) -> str:
        """Join a path onto the endpoint base URL."""
        return f"{self.base_url}/{path.lstrip('/')}"


@dataclass(frozen=True)
class ProbeResult:
    """Result of a single health probe."""

    endpoint: str
    healthy: bool
    status_code: int | None = None
    latency_s: float = 0.0
    body: Any = None
    error: str | None = None
