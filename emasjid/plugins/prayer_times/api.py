"""
Per-plugin API for Prayer Times. Mounted at /api/components/prayer_times/.
Live schedules come from PrayerTimeService; /latest reads the last saved PrayerScheduleRecord.
"""
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict

from .errors import ServiceUnavailableError
from .masjids import MasjidInfo
from .schedule import PrayerSchedule, format_time, is_jumuah, next_prayer, prayer_name
from .service import as_date, date_range
from .store import get_latest_schedule_record
from .zones import MALAYSIA_TZ, ZONES, ZONE_STATES, resolve_zone

PLUGIN_NAME = "prayer_times"
MAX_RANGE_DAYS = 31


class ZoneResponse(BaseModel):
    code: str
    name: str
    state: str


class ResolvedZoneResponse(BaseModel):
    state: str
    city: str
    zone: str
    name: str


class MasjidResponse(BaseModel):
    masjid_id: str
    name: str
    zone: str
    state: Optional[str] = None
    city: Optional[str] = None
    adjustments: Dict[str, int] = {}


class PrayerScheduleResponse(BaseModel):
    id: str
    masjid_id: str
    prayer_date: date
    zone: str
    fajr: str
    sunrise: str
    dhuhr: str
    asr: str
    maghrib: str
    isha: str
    source: str
    fetched_at: Optional[datetime] = None
    hijri: Optional[str] = None
    adjustments: Dict[str, int] = {}
    is_jumuah: bool = False

    @classmethod
    def from_schedule(cls, schedule: PrayerSchedule) -> "PrayerScheduleResponse":
        data = schedule.to_dict()
        data["is_jumuah"] = is_jumuah(schedule)
        return cls.model_validate(data)


class NextPrayerResponse(BaseModel):
    masjid_id: str
    prayer: str
    name: str
    time: str
    display_time: str
    prayer_date: date


class PrayerScheduleRecordResponse(BaseModel):
    """Pydantic view of PrayerScheduleRecord for API; serializes from ORM."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    masjid_id: Optional[str] = None
    zone: Optional[str] = None
    prayer_date: Optional[date] = None
    source: Optional[str] = None
    fetched_at: Optional[datetime] = None
    data: Optional[Dict[str, Any]] = None


def get_router(app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/prayer_times."""
    router = APIRouter(tags=["Prayer Times"])

    def plugin():
        found = app.get_plugin(PLUGIN_NAME)
        if found is None:
            raise HTTPException(status_code=503, detail="Prayer times plugin is not enabled")
        return found

    def masjid_or_404(masjid_id: str) -> MasjidInfo:
        masjid = plugin().directory.get(masjid_id)
        if masjid is None:
            raise HTTPException(status_code=404, detail=f"Unknown masjid: {masjid_id}")
        return masjid

    def parse_date(value: str) -> date:
        try:
            return as_date(value)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid date: {value}")

    def fetch_adjusted(masjid: MasjidInfo, prayer_date: date) -> PrayerSchedule:
        p = plugin()
        try:
            schedule = p.service.fetch(masjid.masjid_id, prayer_date, masjid.zone)
        except ServiceUnavailableError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return p.directory.adjust(masjid, schedule)

    @router.get("/zones", response_model=List[ZoneResponse])
    def list_zones(state: Optional[str] = None) -> List[ZoneResponse]:
        """JAKIM zones, from the upstream directory when the backend offers one."""
        fetch_zones = getattr(plugin().backend, "fetch_zones", None)
        if fetch_zones is not None:
            zones = fetch_zones()
        else:
            zones = [{"code": c, "name": n, "state": ZONE_STATES[c]} for c, n in ZONES.items()]
        if state:
            zones = [z for z in zones if z["state"].lower() == state.strip().lower()]
        return [ZoneResponse(**z) for z in zones]

    @router.get("/zones/resolve", response_model=ResolvedZoneResponse)
    def resolve(state: str = "", city: str = "") -> ResolvedZoneResponse:
        zone = resolve_zone(state, city)
        return ResolvedZoneResponse(state=state, city=city, zone=zone, name=ZONES[zone])

    @router.get("/masjids", response_model=List[MasjidResponse])
    def list_masjids() -> List[MasjidResponse]:
        return [MasjidResponse(**m._asdict()) for m in plugin().directory.all()]

    @router.get("/masjids/{masjid_id}/times", response_model=PrayerScheduleResponse)
    def get_times(masjid_id: str, date: Optional[str] = None) -> PrayerScheduleResponse:
        """Schedule for one date (default: today in Malaysia)."""
        masjid = masjid_or_404(masjid_id)
        prayer_date = parse_date(date) if date else plugin().service.today()
        return PrayerScheduleResponse.from_schedule(fetch_adjusted(masjid, prayer_date))

    @router.get("/masjids/{masjid_id}/range", response_model=List[PrayerScheduleResponse])
    def get_range(masjid_id: str, start: str = Query(...), end: str = Query(...)) -> List[PrayerScheduleResponse]:
        masjid = masjid_or_404(masjid_id)
        dates = date_range(parse_date(start), parse_date(end))
        if len(dates) > MAX_RANGE_DAYS:
            raise HTTPException(status_code=400, detail=f"Range longer than {MAX_RANGE_DAYS} days")
        p = plugin()
        try:
            schedules = p.service.fetch_range(masjid.masjid_id, start, end, masjid.zone)
        except ServiceUnavailableError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return [PrayerScheduleResponse.from_schedule(p.directory.adjust(masjid, s)) for s in schedules]

    @router.get("/masjids/{masjid_id}/next", response_model=NextPrayerResponse)
    def get_next(masjid_id: str, lang: Optional[str] = None,
                 time_format: Optional[str] = None) -> NextPrayerResponse:
        """Next prayer from now; after isha this is tomorrow's fajr.
        lang and time_format default to the plugin's language and time_format settings.
        """
        masjid = masjid_or_404(masjid_id)
        config = plugin().config or {}
        lang = lang or config.get("language", "ms")
        time_format = time_format or config.get("time_format", "24-hour")
        now = datetime.fromtimestamp(plugin().service.clock(), tz=MALAYSIA_TZ)
        schedule = fetch_adjusted(masjid, now.date())
        upcoming = next_prayer(schedule, now)
        if upcoming is None:
            schedule = fetch_adjusted(masjid, now.date() + timedelta(days=1))
            upcoming = ("fajr", schedule.fajr)
        prayer, hhmm = upcoming
        try:
            display_time = format_time(hhmm, time_format)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return NextPrayerResponse(
            masjid_id=masjid.masjid_id,
            prayer=prayer,
            name=prayer_name(prayer, lang),
            time=hhmm,
            display_time=display_time,
            prayer_date=schedule.prayer_date,
        )

    @router.get("/masjids/{masjid_id}/latest", response_model=PrayerScheduleRecordResponse)
    def get_latest(masjid_id: str) -> PrayerScheduleRecordResponse:
        """Return latest saved schedule record from DB (ORM serialized via Pydantic)."""
        masjid = masjid_or_404(masjid_id)
        record = get_latest_schedule_record(masjid.masjid_id)
        if record is None:
            raise HTTPException(status_code=404, detail="No prayer times data available")
        return PrayerScheduleRecordResponse.model_validate(record)

    return router
