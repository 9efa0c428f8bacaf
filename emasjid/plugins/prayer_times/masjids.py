"""
Masjid directory built from the `masjids` config section:

masjids:
  masjid-al-hidayah:
    name: Masjid Al-Hidayah
    zone: SGR01            # optional; resolved from state/city when absent
    state: Selangor
    city: Shah Alam
    adjustments: {fajr: 2, isha: -1}   # optional minute offsets
"""
import logging
from collections import namedtuple
from typing import Any, Dict, List, Optional

from .schedule import PRAYER_ORDER, PrayerSchedule, apply_adjustments
from .zones import is_valid_zone, resolve_zone

logger = logging.getLogger(__name__)

MasjidInfo = namedtuple(
    "MasjidInfo",
    ["masjid_id", "name", "zone", "state", "city", "adjustments"],
    defaults=(None, None, None, None),
)


class MasjidDirectory:
    def __init__(self, masjids_config: Optional[Dict[str, Any]] = None):
        self._masjids: Dict[str, MasjidInfo] = {}
        for masjid_id, cfg in (masjids_config or {}).items():
            self._masjids[str(masjid_id)] = self._build(str(masjid_id), cfg or {})

    def _build(self, masjid_id: str, cfg: Dict[str, Any]) -> MasjidInfo:
        zone = cfg.get("zone")
        if zone and not is_valid_zone(zone):
            logger.warning(f"Masjid {masjid_id}: unknown zone {zone}, resolving from state/city")
            zone = None
        if not zone:
            zone = resolve_zone(cfg.get("state", ""), cfg.get("city", ""))
            logger.info(f"Masjid {masjid_id}: resolved zone {zone}")
        return MasjidInfo(
            masjid_id=masjid_id,
            name=cfg.get("name") or masjid_id,
            zone=zone.upper(),
            state=cfg.get("state"),
            city=cfg.get("city"),
            adjustments=self._clean_adjustments(masjid_id, cfg.get("adjustments")),
        )

    def _clean_adjustments(self, masjid_id: str, raw: Any) -> Dict[str, int]:
        """Keep only {prayer: whole minutes} entries; anything else is logged and dropped."""
        if not raw:
            return {}
        if not isinstance(raw, dict):
            logger.warning(f"Masjid {masjid_id}: adjustments must be a mapping, ignoring {raw!r}")
            return {}
        cleaned = {}
        for prayer, minutes in raw.items():
            if prayer not in PRAYER_ORDER:
                logger.warning(f"Masjid {masjid_id}: unknown prayer {prayer!r} in adjustments, ignoring")
                continue
            if isinstance(minutes, bool) or not isinstance(minutes, int):
                logger.warning(f"Masjid {masjid_id}: adjustment for {prayer} is not whole minutes: {minutes!r}")
                continue
            cleaned[prayer] = minutes
        return cleaned

    def get(self, masjid_id: str) -> Optional[MasjidInfo]:
        return self._masjids.get(masjid_id)

    def all(self) -> List[MasjidInfo]:
        return list(self._masjids.values())

    def adjust(self, masjid: MasjidInfo, schedule: PrayerSchedule) -> PrayerSchedule:
        """Apply this masjid's configured minute offsets to a schedule."""
        return apply_adjustments(schedule, masjid.adjustments)

    def __len__(self) -> int:
        return len(self._masjids)
