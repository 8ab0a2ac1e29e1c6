import uuid
from datetime import datetime, date
from typing import Optional, List

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    JSON,
    BigInteger,
    Text,
    Index,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


USER_ROLES = ("admin", "manager", "user")
APPROVAL_STATUSES = ("pending", "approved", "rejected")
ASSET_CATEGORIES = ("HW", "SW")
EVENT_TYPES = (
    "contract_end",
    "inspection",
    "maintenance",
    "meeting",
    "remote_support",
    "training",
    "sales_support",
    "other",
)
EVENT_STATUSES = ("scheduled", "completed", "cancelled")
SCHEDULE_DIVISIONS = ("am_offsite", "pm_offsite", "all_day_offsite", "night_support", "emergency_support")
ALLOCATION_TYPES = ("resident", "proposal", "pm", "pl", "ta", "se", "etc_support")
MEMBER_STATUSES = ("active", "inactive", "completed", "withdrawn")
HOLIDAY_TYPES = ("national", "company")


def uuid_str() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(50), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="user", nullable=False)
    approval_status: Mapped[str] = mapped_column(String(20), default="approved", nullable=False, index=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    approved_by: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Contract(Base):
    __tablename__ = "contracts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    project_title: Mapped[str] = mapped_column(String(300), nullable=False)
    project_type: Mapped[Optional[str]] = mapped_column(String(50))  # maintenance|construction
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    assets: Mapped[List["Asset"]] = relationship(
        "Asset",
        back_populates="contract",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Asset.id",
    )
    files: Mapped[List["ContractFile"]] = relationship(
        "ContractFile",
        back_populates="contract",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ContractFile.created_at.desc()",
    )


class Asset(Base):
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_id: Mapped[int] = mapped_column(Integer, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(2), nullable=False, index=True)  # HW|SW
    item: Mapped[str] = mapped_column(String(200), nullable=False)
    product: Mapped[str] = mapped_column(String(200), nullable=False)
    qty: Mapped[int] = mapped_column(Integer, default=1)
    cycle: Mapped[Optional[str]] = mapped_column(String(50))
    scope: Mapped[Optional[str]] = mapped_column(Text)
    remark: Mapped[Optional[str]] = mapped_column(Text)
    company: Mapped[Optional[str]] = mapped_column(String(200))
    # Contact blocks
    engineer_main_name: Mapped[Optional[str]] = mapped_column(String(100))
    engineer_main_rank: Mapped[Optional[str]] = mapped_column(String(50))
    engineer_main_phone: Mapped[Optional[str]] = mapped_column(String(50))
    engineer_main_email: Mapped[Optional[str]] = mapped_column(String(100))
    engineer_sub_name: Mapped[Optional[str]] = mapped_column(String(100))
    engineer_sub_rank: Mapped[Optional[str]] = mapped_column(String(50))
    engineer_sub_phone: Mapped[Optional[str]] = mapped_column(String(50))
    engineer_sub_email: Mapped[Optional[str]] = mapped_column(String(100))
    sales_name: Mapped[Optional[str]] = mapped_column(String(100))
    sales_rank: Mapped[Optional[str]] = mapped_column(String(50))
    sales_phone: Mapped[Optional[str]] = mapped_column(String(50))
    sales_email: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    contract: Mapped["Contract"] = relationship("Contract", back_populates="assets")
    details: Mapped[List["AssetDetail"]] = relationship(
        "AssetDetail",
        back_populates="asset",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="AssetDetail.id",
    )


class AssetDetail(Base):
    __tablename__ = "asset_details"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    asset_id: Mapped[int] = mapped_column(Integer, ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True)
    content: Mapped[Optional[str]] = mapped_column(String(300))
    qty: Mapped[Optional[str]] = mapped_column(String(50))
    unit: Mapped[Optional[str]] = mapped_column(String(50))

    asset: Mapped["Asset"] = relationship("Asset", back_populates="details")


class ContractFile(Base):
    __tablename__ = "contract_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_id: Mapped[int] = mapped_column(Integer, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    stored_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, default=0)
    uploaded_by: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    contract: Mapped["Contract"] = relationship("Contract", back_populates="files")


class CalendarEvent(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    type: Mapped[str] = mapped_column(String(30), default="other", index=True)
    schedule_division: Mapped[Optional[str]] = mapped_column(String(30))
    created_by: Mapped[Optional[str]] = mapped_column(String(50))
    customer_name: Mapped[Optional[str]] = mapped_column(String(200))
    location: Mapped[Optional[str]] = mapped_column(String(300))
    start: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end: Mapped[Optional[datetime]] = mapped_column(DateTime)
    contract_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("contracts.id", ondelete="SET NULL"))
    asset_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("assets.id", ondelete="SET NULL"))
    status: Mapped[str] = mapped_column(String(20), default="scheduled")
    support_hours: Mapped[Optional[float]] = mapped_column(Numeric(6, 2, asdecimal=False))
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    contract = relationship("Contract")
    asset = relationship("Asset")

    __table_args__ = (
        Index("idx_events_contract_asset", "contract_id", "asset_id"),
    )


class ProjectMember(Base):
    __tablename__ = "project_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("contracts.id", ondelete="SET NULL"))
    project_name: Mapped[str] = mapped_column(String(300), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    manager_name: Mapped[str] = mapped_column(String(100), nullable=False)
    allocation_type: Mapped[Optional[str]] = mapped_column(String(20))
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    monthly_effort: Mapped[Optional[float]] = mapped_column(Numeric(8, 2, asdecimal=False))
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text)
    severity: Mapped[str] = mapped_column(String(10), default="info")  # info|warning|error
    contract_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("contracts.id", ondelete="CASCADE"))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)


class Notice(Base):
    __tablename__ = "notices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(50))
    updated_by: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    files: Mapped[List["NoticeFile"]] = relationship(
        "NoticeFile",
        back_populates="notice",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class NoticeFile(Base):
    __tablename__ = "notice_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    notice_id: Mapped[int] = mapped_column(Integer, ForeignKey("notices.id", ondelete="CASCADE"), nullable=False, index=True)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    stored_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, default=0)
    uploaded_by: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    notice: Mapped["Notice"] = relationship("Notice", back_populates="files")


class AdditionalHoliday(Base):
    __tablename__ = "additional_holidays"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(20), default="company")  # national|company
    created_by: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ClientSupportReport(Base):
    __tablename__ = "client_support_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("contracts.id", ondelete="SET NULL"))
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    support_summary: Mapped[Optional[str]] = mapped_column(String(300))
    system_name: Mapped[Optional[str]] = mapped_column(String(200))
    support_types: Mapped[Optional[list]] = mapped_column(JSON)
    requester: Mapped[Optional[str]] = mapped_column(String(100))
    request_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    assignee: Mapped[Optional[str]] = mapped_column(String(100))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    request_detail: Mapped[Optional[str]] = mapped_column(Text)
    cause: Mapped[Optional[str]] = mapped_column(Text)
    support_detail: Mapped[Optional[str]] = mapped_column(Text)
    overall_opinion: Mapped[Optional[str]] = mapped_column(Text)
    note: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    contract = relationship("Contract")


class VersionHistory(Base):
    __tablename__ = "version_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)  # contract|asset
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    change_type: Mapped[str] = mapped_column(String(10), nullable=False)  # create|update|delete
    data: Mapped[Optional[dict]] = mapped_column(JSON)
    diff: Mapped[Optional[dict]] = mapped_column(JSON)
    created_by: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("idx_version_entity", "entity_id", "entity_type"),
    )
