import re
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator


DATETIME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})[ T](\d{2}:\d{2})(:\d{2})?$")


def parse_report_datetime(value) -> Optional[datetime]:
    """Accept "YYYY-MM-DD HH:mm[:ss]" or the datetime-local form with a "T"."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    m = DATETIME_RE.match(str(value).strip())
    if not m:
        raise ValueError("must be YYYY-MM-DD HH:mm or datetime-local format")
    return datetime.fromisoformat(f"{m.group(1)}T{m.group(2)}{m.group(3) or ':00'}")


def _alias(snake: str, camel: str):
    return Field(default=None, validation_alias=AliasChoices(snake, camel))


class SupportReportIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contract_id: Optional[int] = _alias("contract_id", "contractId")
    customer_name: str = Field(min_length=1, max_length=200, validation_alias=AliasChoices("customer_name", "customerName"))
    support_summary: Optional[str] = _alias("support_summary", "supportSummary")
    system_name: Optional[str] = _alias("system_name", "systemName")
    support_types: List[str] = Field(default_factory=list, validation_alias=AliasChoices("support_types", "supportTypes"))
    requester: Optional[str] = None
    request_at: Optional[datetime] = _alias("request_at", "requestAt")
    assignee: Optional[str] = None
    completed_at: Optional[datetime] = _alias("completed_at", "completedAt")
    request_detail: Optional[str] = _alias("request_detail", "requestDetail")
    cause: Optional[str] = None
    support_detail: Optional[str] = _alias("support_detail", "supportDetail")
    overall_opinion: Optional[str] = _alias("overall_opinion", "overallOpinion")
    note: Optional[str] = None

    @field_validator("customer_name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("contract_id", mode="before")
    @classmethod
    def blank_contract(cls, v):
        if v in ("", 0, "0"):
            return None
        return v

    @field_validator("request_at", "completed_at", mode="before")
    @classmethod
    def report_datetime(cls, v):
        return parse_report_datetime(v)

    @field_validator("support_types", mode="before")
    @classmethod
    def clean_types(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        if not isinstance(v, list):
            return []
        return [str(x).strip() for x in v if x is not None and str(x).strip()]

    @field_validator(
        "support_summary",
        "system_name",
        "requester",
        "assignee",
        "request_detail",
        "cause",
        "support_detail",
        "overall_opinion",
        "note",
        mode="before",
    )
    @classmethod
    def trim(cls, v):
        if v is None:
            return None
        return str(v).strip()
