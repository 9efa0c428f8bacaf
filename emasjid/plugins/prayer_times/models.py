"""
SQLAlchemy models for prayer times: last saved schedule per masjid and date.
"""
from sqlalchemy import Column, String, Date, DateTime, Integer, JSON, UniqueConstraint

from emasjid.core.db import Base


class PrayerScheduleRecord(Base):
    """One saved schedule. data is JSON: {prayer_name: "HH:MM", ..., "hijri": str, "adjustments": {...}}."""
    __tablename__ = "prayer_schedule_records"
    __table_args__ = (UniqueConstraint("masjid_id", "prayer_date", name="uq_masjid_prayer_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    masjid_id = Column(String(255), nullable=False, index=True)
    zone = Column(String(16), nullable=False)
    prayer_date = Column(Date, nullable=False, index=True)
    source = Column(String(32), nullable=False)  # fresh | manual | stale_fallback
    fetched_at = Column(DateTime(timezone=False), nullable=False, index=True)
    data = Column(JSON, nullable=False)
