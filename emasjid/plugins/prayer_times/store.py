"""
Storage layer: save and load prayer schedules from DB.
"""
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import select, delete

from emasjid.core.db import session_scope
from emasjid.plugins.prayer_times.models import PrayerScheduleRecord
from emasjid.plugins.prayer_times.schedule import PRAYER_ORDER, PrayerSchedule


def _naive_utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.now(timezone.utc).replace(tzinfo=None)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def save_schedule(schedule: PrayerSchedule) -> None:
    """Replace the saved schedule for (masjid_id, prayer_date) with this one."""
    prayer_date = date.fromisoformat(schedule.prayer_date)
    data = {name: getattr(schedule, name) for name in PRAYER_ORDER}
    data["hijri"] = schedule.hijri
    data["adjustments"] = dict(schedule.adjustments or {})
    with session_scope() as session:
        session.execute(
            delete(PrayerScheduleRecord).where(
                PrayerScheduleRecord.masjid_id == schedule.masjid_id,
                PrayerScheduleRecord.prayer_date == prayer_date,
            )
        )
        session.add(
            PrayerScheduleRecord(
                masjid_id=schedule.masjid_id,
                zone=schedule.zone,
                prayer_date=prayer_date,
                source=schedule.source,
                fetched_at=_naive_utc(schedule.fetched_at),
                data=data,
            )
        )


def get_schedule_record(masjid_id: str, prayer_date: date) -> Optional[PrayerScheduleRecord]:
    with session_scope() as session:
        return (
            session.execute(
                select(PrayerScheduleRecord).where(
                    PrayerScheduleRecord.masjid_id == masjid_id,
                    PrayerScheduleRecord.prayer_date == prayer_date,
                )
            )
            .scalars().first()
        )


def get_latest_schedule_record(masjid_id: str) -> Optional[PrayerScheduleRecord]:
    """Return the most recently fetched PrayerScheduleRecord for this masjid (for API serialization)."""
    with session_scope() as session:
        return (
            session.execute(
                select(PrayerScheduleRecord)
                .where(PrayerScheduleRecord.masjid_id == masjid_id)
                .order_by(PrayerScheduleRecord.fetched_at.desc(), PrayerScheduleRecord.id.desc())
                .limit(1)
            )
            .scalars().first()
        )


def record_to_schedule(record: PrayerScheduleRecord) -> PrayerSchedule:
    data = record.data or {}
    return PrayerSchedule(
        masjid_id=record.masjid_id,
        prayer_date=record.prayer_date.isoformat(),
        zone=record.zone,
        source=record.source,
        fetched_at=record.fetched_at.replace(tzinfo=timezone.utc),
        hijri=data.get("hijri"),
        adjustments=data.get("adjustments") or None,
        **{name: data[name] for name in PRAYER_ORDER},
    )
