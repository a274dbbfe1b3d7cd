"""API connection configuration model."""

from pydantic import BaseModel, Field


class ApiConfig(BaseModel):
    """Configuration for the payroll REST API.

    Attributes:
        base_url: API root URL (overridden by PAYROLL_API_URL env)
        timeout: Per-request timeout in seconds
    """

    base_url: str = "http://localhost:5001/api"
    timeout: float = Field(15.0, gt=0.0, le=300.0)
