"""Intervals.icu API models used by the health data service.

Reference: https://intervals.icu/api/v1/docs/swagger-ui/index.html
Forum guide: https://forum.intervals.icu/t/api-access-to-intervals-icu/609
"""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class ManualActivity(BaseModel):
    """A completed workout recorded without a device file.

    Upload via: POST /api/v1/athlete/{id}/activities/manual
    """

    start_date_local: str = Field(description="ISO datetime: YYYY-MM-DDTHH:MM:SS")
    type: str = Field(default="Workout", description="Intervals.icu sport type")
    name: str
    moving_time: int = Field(description="Duration in seconds")
    elapsed_time: int | None = None
    description: str | None = None
    external_id: str | None = Field(
        default=None,
        description="Stable ID so re-uploading the same session does not duplicate it "
        "(e.g. 'n4x4-2026-02-18T10:00:00')",
    )


class WellnessRecord(BaseModel):
    """One day of wellness data. Metrics vary per athlete, so extras are kept.

    Fetch via: GET /api/v1/athlete/{id}/wellness?oldest=...&newest=...
    """

    model_config = ConfigDict(extra="allow")

    id: date = Field(description="The day this record covers")
    vo2max: float | None = None

    def metric(self, name: str) -> float | None:
        value = getattr(self, name, None)
        if value is None and self.model_extra:
            value = self.model_extra.get(name)
        return float(value) if isinstance(value, (int, float)) else None
