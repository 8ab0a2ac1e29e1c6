from datetime import date
from typing import Optional, Literal
from pydantic import BaseModel, Field, field_validator


AllocationType = Literal["resident", "proposal", "pm", "pl", "ta", "se", "etc_support"]
MemberStatus = Literal["active", "inactive", "completed", "withdrawn"]


class MemberIn(BaseModel):
    contract_id: Optional[int] = None
    project_name: str = Field(min_length=1, max_length=300)
    customer_name: str = Field(min_length=1, max_length=200)
    manager_name: str = Field(min_length=1, max_length=100)
    allocation_type: AllocationType
    start_date: date
    end_date: Optional[date] = None
    monthly_effort: Optional[float] = Field(default=None, ge=0)
    status: MemberStatus = "active"
    notes: Optional[str] = None

    @field_validator("project_name", "customer_name", "manager_name", mode="before")
    @classmethod
    def strip(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("contract_id", "end_date", "monthly_effort", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if v == "":
            return None
        return v
