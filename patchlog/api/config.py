"""
Configuration for the patchlog HTTP surface.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ApiSettings(BaseSettings):
    """HTTP API configuration."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8090)

    # Max change-sets returned by the changesets route (0 = no limit)
    max_change_sets: int = Field(default=0, description="Cap on listed change-sets (0=unlimited)")

    cors_origins: list[str] = Field(default=["*"])

    model_config = {"env_prefix": "PATCHLOG_API_"}
