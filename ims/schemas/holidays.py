import datetime as dt
from pydantic import BaseModel, Field, field_validator


class HolidayIn(BaseModel):
    date: dt.date
    name: str = Field(min_length=1, max_length=200)
    type: str = "company"

    @field_validator("date", mode="before")
    @classmethod
    def date_part(cls, v):
        # "2025-05-05T00:00:00.000Z" -> "2025-05-05"
        if isinstance(v, str):
            return v.strip()[:10]
        return v

    @field_validator("name", mode="before")
    @classmethod
    def strip(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("type", mode="before")
    @classmethod
    def national_or_company(cls, v):
        return "national" if v == "national" else "company"


class HolidaySyncRequest(BaseModel):
    years: list[int] = Field(default_factory=list)
