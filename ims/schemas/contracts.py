from datetime import date
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, field_validator, model_validator

from ..services.scheduling import normalize_cycle


class ContactPerson(BaseModel):
    name: Optional[str] = None
    rank: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    @field_validator("name", "rank", "phone", "email", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class EngineerInfo(BaseModel):
    main: ContactPerson = Field(default_factory=ContactPerson)
    sub: ContactPerson = Field(default_factory=ContactPerson)


class AssetDetailIn(BaseModel):
    content: Optional[str] = ""
    qty: Optional[str] = ""
    unit: Optional[str] = "ea"

    @field_validator("content", "qty", "unit", mode="before")
    @classmethod
    def to_text(cls, v):
        return "" if v is None else str(v)


class AssetIn(BaseModel):
    category: Literal["HW", "SW"]
    item: str = Field(min_length=1)
    product: str = Field(min_length=1)
    qty: int = Field(default=1, ge=1)
    cycle: Optional[str] = None
    scope: Optional[str] = None
    remark: Optional[str] = None
    company: Optional[str] = None
    engineer: EngineerInfo = Field(default_factory=EngineerInfo)
    sales: ContactPerson = Field(default_factory=ContactPerson)
    details: List[AssetDetailIn] = Field(default_factory=list)

    @field_validator("category", mode="before")
    @classmethod
    def upper_category(cls, v):
        return str(v).strip().upper() if v is not None else v

    @field_validator("qty", mode="before")
    @classmethod
    def default_qty(cls, v):
        if v is None or v == "":
            return 1
        return v

    @field_validator("cycle", mode="before")
    @classmethod
    def cycle_code(cls, v):
        return normalize_cycle(v)

    @field_validator("scope", "remark", "company", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class AssetCreate(AssetIn):
    contract_id: int


class ContractIn(BaseModel):
    customer_name: str = Field(min_length=1, max_length=200)
    project_title: str = Field(min_length=1, max_length=300)
    project_type: Optional[Literal["maintenance", "construction"]] = None
    start_date: date
    end_date: date
    notes: Optional[str] = None
    items: List[AssetIn] = Field(default_factory=list)

    @field_validator("customer_name", "project_title", mode="before")
    @classmethod
    def strip(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("project_type", mode="before")
    @classmethod
    def blank_type(cls, v):
        if v is None or str(v).strip() == "":
            return None
        return v

    @model_validator(mode="after")
    def check_period(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self
