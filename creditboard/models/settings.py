"""Persisted dashboard settings: outstanding baseline, closing balance, targets."""

from pydantic import BaseModel, Field

from creditboard.models.constants import (
    DEFAULT_TARGET_OUTSTANDING,
    DEFAULT_TARGET_MOBILIZED,
    DEFAULT_TARGET_SERVICE_FEE,
)


class OutstandingExtras(BaseModel):
    """User-entered outstanding baseline (start of day / month / year)."""

    start_of_day: int = Field(0, description="Outstanding balance at the start of the day")
    start_of_month: int = Field(0, description="Outstanding balance at the start of the month")
    start_of_year: int = Field(0, description="Outstanding balance at the start of the year")


class PreviousDayBalance(BaseModel):
    """Closing outstanding balance tagged with the day key it was recorded on."""

    date: str = Field(..., description="Day key (YYYY-MM-DD)")
    outstanding: int = Field(..., description="Outstanding balance at the time of recording")


class TargetValues(BaseModel):
    """Target values for the progress cards."""

    outstanding: int = Field(DEFAULT_TARGET_OUTSTANDING, description="Net outstanding target")
    mobilized: int = Field(DEFAULT_TARGET_MOBILIZED, description="Mobilized funds target")
    service_fee: int = Field(DEFAULT_TARGET_SERVICE_FEE, description="Service fee target")


def default_monthly_targets() -> TargetValues:
    """Monthly targets default to a twelfth of the yearly defaults."""
    yearly = TargetValues()
    return TargetValues(
        outstanding=yearly.outstanding // 12,
        mobilized=yearly.mobilized // 12,
        service_fee=yearly.service_fee // 12,
    )
