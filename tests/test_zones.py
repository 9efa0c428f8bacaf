from __future__ import annotations

import pytest

from emasjid.plugins.prayer_times.zones import (
    DEFAULT_ZONE,
    ZONES,
    ZONE_STATES,
    is_valid_zone,
    resolve_zone,
    zones_for_state,
)


def test_zone_table() -> None:
    assert len(ZONES) == 58
    assert ZONE_STATES["SGR01"] == "Selangor"
    assert ZONE_STATES["WLY02"] == "Wilayah Persekutuan"
    assert set(ZONE_STATES) == set(ZONES)


def test_is_valid_zone() -> None:
    assert is_valid_zone("WLY01")
    assert is_valid_zone("sgr03")
    assert not is_valid_zone("XYZ01")
    assert not is_valid_zone(None)


def test_zones_for_state() -> None:
    assert zones_for_state("johor") == ["JHR01", "JHR02", "JHR03", "JHR04"]
    assert zones_for_state("Atlantis") == []


@pytest.mark.parametrize(
    ("state", "city", "expected"),
    [
        ("Wilayah Persekutuan", "Kuala Lumpur", "WLY01"),
        ("", "Putrajaya", "WLY01"),
        ("Labuan", "", "WLY02"),
        ("Selangor", "Shah Alam", "SGR01"),
        ("Selangor", "Sabak Bernam", "SGR02"),
        ("Selangor", "Klang", "SGR03"),
        ("Johor", "Johor Bahru", "JHR02"),
        ("Johor", "Muar", "JHR04"),
        ("Johor", "Kluang", "JHR03"),
        ("Melaka", "Alor Gajah", "MLK01"),
        ("Penang", "George Town", "PNG01"),
        ("Kedah", "Langkawi", "KDH06"),
        ("Kedah", "Alor Setar", "KDH01"),
        ("Pahang", "Cameron Highlands", "PHG06"),
        ("Perak", "Ipoh", "PRK02"),
        ("Sabah", "Kota Kinabalu", "SBH07"),
        ("Sarawak", "Miri", "SWK02"),
        ("Sarawak", "Kuching", "SWK08"),
        ("Terengganu", "Kemaman", "TRG04"),
    ],
)
def test_resolve_zone(state: str, city: str, expected: str) -> None:
    assert resolve_zone(state, city) == expected


def test_resolve_unknown_falls_back_to_kuala_lumpur() -> None:
    assert resolve_zone("Atlantis", "Nowhere") == DEFAULT_ZONE
    assert resolve_zone("", "") == "WLY01"
