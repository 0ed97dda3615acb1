from pydantic import Field

from meal_notifications.schemas.camel_base_model import CamelCaseBaseModel


class SchedulerRunResult(CamelCaseBaseModel):
    """Aggregate outcome of one windowed scheduler batch."""

    due: int = Field(..., ge=0, description="Schedules selected for this batch")
    processed: int = Field(..., ge=0, description="Schedules fanned out and marked DONE")
    failed: int = Field(..., ge=0, description="Schedules rolled back, left PENDING")
    skipped: int = Field(
        default=0,
        ge=0,
        description="Schedules no longer pending or due when their unit of work began",
    )


class CleanupRunResult(CamelCaseBaseModel):
    """Row counts removed by one retention cleanup pass."""

    deleted_notifications: int = Field(..., ge=0)
    deleted_schedules: int = Field(..., ge=0)
