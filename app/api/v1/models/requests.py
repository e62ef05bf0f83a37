"""
API request models using Pydantic.

Field and directory payloads reuse the domain input models; the models
here cover the remaining endpoints.
"""
from datetime import date
from typing import Optional

from pydantic import Field

from app.domain.models import CamelModel


class AnalysisRequest(CamelModel):
    """Request body for running an analysis on a field."""
    date_start: date = Field(
        description="First day of the imagery period",
        examples=["2025-05-01"]
    )
    date_end: date = Field(
        description="Last day of the imagery period",
        examples=["2025-05-31"]
    )
    advice: Optional[str] = Field(
        default=None,
        description="Optional advisory text stored with the result"
    )


class ValidationRequest(CamelModel):
    """Request body for comparing a field's NDVI with reference data."""
    date_start: Optional[date] = Field(
        default=None,
        description="First day of the reference period (defaults to the analysis period)"
    )
    date_end: Optional[date] = Field(
        default=None,
        description="Last day of the reference period (defaults to the analysis period)"
    )


class MoveFieldRequest(CamelModel):
    """Request body for moving a field to another directory."""
    directory_id: str = Field(
        description="Target directory id",
        examples=["directory_default"]
    )


class ResetRequest(CamelModel):
    """Request body for resetting all stored data."""
    seed_sample: bool = Field(
        default=True,
        description="Add the sample field after clearing"
    )
