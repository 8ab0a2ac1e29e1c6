"""
Public holiday client and national-holiday sync.
Fetches holidays from a Nager.Date compatible API and stores them as
additional_holidays rows of type "national".
"""
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import httpx
from sqlalchemy.orm import Session

from ..config import settings
from ..logging import structlog
from ..models.models import AdditionalHoliday
from .scheduling import today_local


log = structlog.get_logger(__name__)


class HolidayProviderError(httpx.RequestError):
    """The provider answered, but not with a holiday list."""


class HolidayClient:
    """Client for the public holiday provider"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        country: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.base_url = (base_url or settings.holiday_api_url).rstrip("/")
        self.country = (country or settings.holiday_country).upper()
        self.transport = transport
        self.timeout = timeout

    def fetch_year(self, year: int) -> List[Dict[str, Any]]:
        """Holidays for one year as [{"date": date, "name": str}]"""
        url = f"{self.base_url}/{year}/{self.country}"
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
            try:
                payload = response.json()
            except ValueError as e:
                raise HolidayProviderError(f"Non-JSON holiday response for {year}", request=response.request) from e
        if not isinstance(payload, list):
            raise HolidayProviderError(f"Unexpected holiday response for {year}", request=response.request)

        out = []
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            d = normalize_holiday_date(entry.get("date"))
            name = str(entry.get("localName") or entry.get("name") or "").strip()
            if d is None or not name:
                continue
            out.append({"date": d, "name": name})
        return out


def normalize_holiday_date(value: Any) -> Optional[date]:
    """Accept date/datetime objects, YYYY-MM-DD and ISO datetime strings."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def default_sync_years() -> List[int]:
    if settings.holiday_sync_years:
        return list(settings.holiday_sync_years)
    year = today_local().year
    return [year, year + 1]


def sync_national_holidays(
    db: Session,
    years: Optional[Iterable[int]] = None,
    client: Optional[HolidayClient] = None,
) -> int:
    """
    Insert national holidays that are not stored yet for the given years.
    Returns the number of inserted rows. HTTP errors propagate to the caller.
    """
    client = client or HolidayClient()
    years = list(years or default_sync_years())
    inserted = 0
    for year in years:
        holidays = client.fetch_year(year)
        for h in holidays:
            exists = (
                db.query(AdditionalHoliday.id)
                .filter(
                    AdditionalHoliday.date == h["date"],
                    AdditionalHoliday.name == h["name"],
                    AdditionalHoliday.type == "national",
                )
                .first()
            )
            if exists:
                continue
            db.add(AdditionalHoliday(date=h["date"], name=h["name"], type="national", created_by="system"))
            db.flush()
            inserted += 1
        log.info("holiday_sync_year", year=year, fetched=len(holidays), country=client.country)
    db.commit()
    log.info("holiday_sync_done", years=years, inserted=inserted)
    return inserted


def serialize_holiday(h: AdditionalHoliday) -> Dict[str, Any]:
    return {
        "id": str(h.id),
        "date": h.date.isoformat() if h.date else "",
        "name": h.name,
        "type": h.type,
        "created_by": h.created_by,
        "created_at": h.created_at.isoformat() if h.created_at else None,
        "updated_at": h.updated_at.isoformat() if h.updated_at else None,
    }
