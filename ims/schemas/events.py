from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, Field, AliasChoices, field_validator


EventType = Literal[
    "contract_end",
    "inspection",
    "maintenance",
    "meeting",
    "remote_support",
    "training",
    "sales_support",
    "other",
]
ScheduleDivision = Literal["am_offsite", "pm_offsite", "all_day_offsite", "night_support", "emergency_support"]


class EventIn(BaseModel):
    id: Optional[str] = None
    title: str = Field(min_length=1, max_length=300)
    type: EventType = "other"
    schedule_division: Optional[ScheduleDivision] = Field(
        default=None, validation_alias=AliasChoices("schedule_division", "scheduleDivision")
    )
    customer_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("customer_name", "customerName"))
    location: Optional[str] = None
    start: datetime
    end: Optional[datetime] = None
    contract_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("contract_id", "contractId"))
    asset_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("asset_id", "assetId"))
    status: Literal["scheduled", "completed", "cancelled"] = "scheduled"
    support_hours: Optional[float] = Field(default=None, validation_alias=AliasChoices("support_hours", "supportHours"))
    description: Optional[str] = None

    @field_validator("schedule_division", "customer_name", "location", "description", "end", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("contract_id", "asset_id", mode="before")
    @classmethod
    def zero_to_none(cls, v):
        if v in ("", 0, "0"):
            return None
        return v


class GenerateInspectionsRequest(BaseModel):
    months: int = Field(default=3, ge=1, le=60)


class SupportHoursRequest(BaseModel):
    start: Optional[str] = None
    end: Optional[str] = None
