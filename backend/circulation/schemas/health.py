"""
Schema do endpoint de healthcheck.
"""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Status da aplicação e das dependências (PostgreSQL e Redis)."""

    status: Literal["healthy", "degraded"]
    app_name: str
    environment: str
    database: bool = Field(True, description="PostgreSQL respondeu ao SELECT 1")
    redis: bool = Field(True, description="Redis respondeu ao PING")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "status": "degraded",
                    "app_name": "Circulation API",
                    "environment": "production",
                    "database": True,
                    "redis": False,
                }
            ]
        }
    }
