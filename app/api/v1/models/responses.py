"""
API response models using Pydantic.
"""
from typing import Optional

from pydantic import Field as PField

from app.domain.models import CamelModel, Field, StoreCounts


class DeleteResponse(CamelModel):
    """Response model for delete endpoints."""
    id: str = PField(
        description="Identifier of the deleted record"
    )
    deleted: bool = PField(
        description="Whether a record was removed"
    )


class ResetResponse(CamelModel):
    """Response model for the reset endpoint."""
    sample_field: Optional[Field] = PField(
        default=None,
        description="Seeded sample field, if any"
    )
    counts: StoreCounts = PField(
        description="Record counts after the reset"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "sampleField": None,
                "counts": {"fields": 0, "directories": 1, "analyses": 0},
            }
        }
