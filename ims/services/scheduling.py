"""
Calendar scheduling rules.

- Inspection cycle expansion (asset cycle -> dated inspection events)
- Contract-end event generation
- Support-hour calculation excluding the 12:00-13:00 lunch window
- Contract status / effort helpers used by the dashboard and members
"""
import calendar
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Set, Tuple, Union

import pytz
from sqlalchemy.orm import Session

from ..config import settings
from ..logging import structlog
from ..models.models import Asset, CalendarEvent, Contract


log = structlog.get_logger(__name__)

CYCLE_MONTHS = {
    "month": 1,
    "quarter": 3,
    "half-year": 6,
    "year": 12,
    "on-failure": 0,
}

CYCLE_ALIASES = {
    "월": "month",
    "monthly": "month",
    "분기": "quarter",
    "quarterly": "quarter",
    "반기": "half-year",
    "half_year": "half-year",
    "연": "year",
    "년": "year",
    "yearly": "year",
    "annual": "year",
    "장애시": "on-failure",
    "수동": "on-failure",
    "on_failure": "on-failure",
}

INSPECTION_START = time(10, 0)
INSPECTION_END = time(12, 0)
CONTRACT_END_START = time(9, 0)
CONTRACT_END_END = time(18, 0)
LUNCH_START = time(12, 0)
LUNCH_END = time(13, 0)

DateLike = Union[date, datetime, str, None]


def today_local() -> date:
    """Today's date in the configured business timezone."""
    tz = pytz.timezone(settings.tz_default)
    return datetime.now(tz).date()


def to_local_naive(value: datetime) -> datetime:
    """
    Wall-clock time in TZ_DEFAULT without tzinfo, the form stored in the DB.
    Naive input is taken as already local; aware input is converted first.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(pytz.timezone(settings.tz_default)).replace(tzinfo=None)


def normalize_cycle(cycle: Optional[str]) -> Optional[str]:
    if cycle is None:
        return None
    value = str(cycle).strip()
    if not value:
        return None
    lowered = value.lower()
    if lowered in CYCLE_MONTHS:
        return lowered
    return CYCLE_ALIASES.get(value) or CYCLE_ALIASES.get(lowered) or value


def cycle_months(cycle: Optional[str]) -> int:
    """Month step of an inspection cycle; 0 for on-failure and unknown labels."""
    return CYCLE_MONTHS.get(normalize_cycle(cycle) or "", 0)


def add_months(d: date, months: int, anchor_day: Optional[int] = None) -> date:
    """Shift by whole months keeping the anchor day, clamped to the month end."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = anchor_day or d.day
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last))


def inspection_dates(
    start: date,
    end: Optional[date],
    cycle: Optional[str],
    today: date,
    months: int = 3,
) -> List[date]:
    step = cycle_months(cycle)
    if step <= 0 or start is None:
        return []
    limit = add_months(today, months)
    if end is not None and end < limit:
        limit = end

    dates: List[date] = []
    k = 0
    while True:
        current = add_months(start, k * step, anchor_day=start.day)
        if current > limit:
            break
        if current >= today:
            dates.append(current)
        k += 1
    return dates


def _existing_keys(db: Session, event_type: str) -> Set[Tuple[Optional[int], Optional[int], date]]:
    rows = (
        db.query(CalendarEvent.contract_id, CalendarEvent.asset_id, CalendarEvent.start)
        .filter(CalendarEvent.type == event_type)
        .all()
    )
    return {(r[0], r[1], r[2].date()) for r in rows if r[2] is not None}


def _inspection_description(asset: Asset) -> str:
    return "\n".join(
        [
            f"Item: {asset.item}",
            f"Product: {asset.product}",
            f"Cycle: {asset.cycle}",
            f"Engineer: {asset.engineer_main_name or 'TBD'}",
        ]
    )


def generate_inspection_events(
    db: Session,
    months: int = 3,
    today: Optional[date] = None,
    created_by: Optional[str] = None,
) -> int:
    """
    Expand every asset's inspection cycle into scheduled inspection events
    between today and min(today + months, contract end). Returns the number
    of events created.
    """
    today = today or today_local()
    seen = _existing_keys(db, "inspection")
    created = 0

    contracts: Iterable[Contract] = db.query(Contract).order_by(Contract.id).all()
    for contract in contracts:
        for asset in contract.assets:
            for d in inspection_dates(contract.start_date, contract.end_date, asset.cycle, today, months):
                key = (contract.id, asset.id, d)
                if key in seen:
                    continue
                seen.add(key)
                db.add(
                    CalendarEvent(
                        title=f"[{contract.customer_name}] {asset.item} inspection",
                        type="inspection",
                        customer_name=contract.customer_name,
                        start=datetime.combine(d, INSPECTION_START),
                        end=datetime.combine(d, INSPECTION_END),
                        contract_id=contract.id,
                        asset_id=asset.id,
                        status="scheduled",
                        support_hours=support_hours(
                            datetime.combine(d, INSPECTION_START), datetime.combine(d, INSPECTION_END)
                        ),
                        description=_inspection_description(asset),
                        created_by=created_by,
                    )
                )
                created += 1
    db.commit()
    log.info("inspection_events_generated", created=created, months=months)
    return created


def generate_contract_end_events(db: Session, created_by: Optional[str] = None) -> int:
    """One contract_end event per contract on its end date, 09:00-18:00."""
    seen = {(cid, d) for cid, _aid, d in _existing_keys(db, "contract_end")}
    created = 0
    for contract in db.query(Contract).order_by(Contract.id).all():
        if contract.end_date is None:
            continue
        key = (contract.id, contract.end_date)
        if key in seen:
            continue
        seen.add(key)
        start = datetime.combine(contract.end_date, CONTRACT_END_START)
        end = datetime.combine(contract.end_date, CONTRACT_END_END)
        db.add(
            CalendarEvent(
                title=f"[{contract.customer_name}] contract expiry",
                type="contract_end",
                customer_name=contract.customer_name,
                start=start,
                end=end,
                contract_id=contract.id,
                status="scheduled",
                description=f"Project: {contract.project_title}\nPrepare contract renewal",
                created_by=created_by,
            )
        )
        created += 1
    db.commit()
    log.info("contract_end_events_generated", created=created)
    return created


def _to_datetime(value: DateLike) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_local_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return to_local_naive(parsed)


def support_minutes(start: DateLike, end: DateLike) -> int:
    """Elapsed minutes minus any overlap with 12:00-13:00 on each spanned day."""
    s = _to_datetime(start)
    e = _to_datetime(end)
    if s is None or e is None or e <= s:
        return 0

    total = (e - s).total_seconds()
    day = s.date()
    while day <= e.date():
        lunch_s = datetime.combine(day, LUNCH_START)
        lunch_e = datetime.combine(day, LUNCH_END)
        overlap = (min(e, lunch_e) - max(s, lunch_s)).total_seconds()
        if overlap > 0:
            total -= overlap
        day += timedelta(days=1)
    return max(0, int(total // 60))


def support_hours(start: DateLike, end: DateLike) -> float:
    return round(support_minutes(start, end) / 60, 2)


def _to_date(value: DateLike) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def days_until_expiry(end_date: DateLike, today: Optional[date] = None) -> Optional[int]:
    end = _to_date(end_date)
    if end is None:
        return None
    return (end - (today or today_local())).days


def contract_status(end_date: DateLike, today: Optional[date] = None, expiring_days: Optional[int] = None) -> str:
    days = days_until_expiry(end_date, today)
    if days is None:
        return "unknown"
    if days < 0:
        return "expired"
    window = settings.contract_expiring_days if expiring_days is None else expiring_days
    if days <= window:
        return "expiring"
    return "active"


def contract_progress(start_date: DateLike, end_date: DateLike, today: Optional[date] = None) -> int:
    """Elapsed share of the contract period in percent (0-100)."""
    start = _to_date(start_date)
    end = _to_date(end_date)
    if start is None or end is None:
        return 0
    total = (end - start).days
    if total <= 0:
        return 100
    elapsed = ((today or today_local()) - start).days
    return max(0, min(100, round(elapsed * 100 / total)))


def monthly_effort(start_date: DateLike, end_date: DateLike = None) -> float:
    start = _to_date(start_date)
    if start is None:
        return 0.0
    end = _to_date(end_date) or start
    if end < start:
        return 0.0
    return round(((end - start).days + 1) / 30, 2)
