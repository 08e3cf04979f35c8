"""
Request schemas for the draw API.

Bodies use camelCase field names; the Python attribute names stay snake_case.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PublishCommitmentRequest(_CamelModel):
    raffle_id: str = Field(..., alias="raffleId", min_length=1, max_length=100)
    draw_scheduled_at: datetime = Field(
        ..., alias="drawScheduledAt", description="When the draw will run (ISO 8601)"
    )


class ComplianceReportRequest(_CamelModel):
    raffle_id: str = Field(..., alias="raffleId", min_length=1, max_length=100)


class ConductDrawRequest(_CamelModel):
    raffle_id: str = Field(..., alias="raffleId", min_length=1, max_length=100)
    total_tickets: int = Field(..., alias="totalTickets", description="Tickets sold, at least 1")
    participant_count: int = Field(
        ..., alias="participantCount", description="Distinct participants, at least 0"
    )
