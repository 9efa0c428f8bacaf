"""
JAKIM prayer-time zones for Malaysia and a state/city -> zone resolver.
"""
from typing import Dict, List
from zoneinfo import ZoneInfo

DEFAULT_ZONE = "WLY01"  # Kuala Lumpur

# Fixed UTC+8, no DST
MALAYSIA_TZ = ZoneInfo("Asia/Kuala_Lumpur")

ZONES: Dict[str, str] = {
    # Johor
    "JHR01": "Pulau Aur dan Pulau Pemanggil",
    "JHR02": "Johor Bahru, Kota Tinggi, Mersing, Kulai",
    "JHR03": "Kluang, Pontian",
    "JHR04": "Batu Pahat, Muar, Segamat, Gemas Johor, Tangkak",
    # Kedah
    "KDH01": "Kota Setar, Kubang Pasu, Pokok Sena",
    "KDH02": "Kuala Muda, Yan, Pendang",
    "KDH03": "Padang Terap, Sik",
    "KDH04": "Baling",
    "KDH05": "Bandar Baharu, Kulim",
    "KDH06": "Langkawi",
    "KDH07": "Gunung Jerai",
    # Kelantan
    "KTN01": "Bachok, Kota Bharu, Machang, Pasir Mas, Pasir Puteh, Tanah Merah, Tumpat, Kuala Krai, Mukim Chiku",
    "KTN03": "Gua Musang, Mukim Galas, Bertam",
    # Melaka
    "MLK01": "Seluruh Negeri Melaka",
    # Negeri Sembilan
    "NGS01": "Tampin, Jempol",
    "NGS02": "Jelebu, Kuala Pilah, Port Dickson, Rembau, Seremban",
    # Pahang
    "PHG01": "Pulau Tioman",
    "PHG02": "Kuantan, Pekan, Rompin, Muadzam Shah",
    "PHG03": "Jerantut, Temerloh, Maran, Bera, Chenor, Jengka",
    "PHG04": "Bentong, Lipis, Raub",
    "PHG05": "Genting Sempah, Janda Baik, Bukit Tinggi",
    "PHG06": "Cameron Highlands, Genting Highlands, Bukit Fraser",
    # Pulau Pinang
    "PNG01": "Seluruh Negeri Pulau Pinang",
    # Perak
    "PRK01": "Tapah, Slim River, Tanjung Malim",
    "PRK02": "Kuala Kangsar, Sg. Siput, Ipoh, Batu Gajah, Kampar",
    "PRK03": "Lenggong, Pengkalan Hulu, Grik",
    "PRK04": "Temengor, Belum",
    "PRK05": "Kg Gajah, Teluk Intan, Bagan Datuk, Seri Iskandar, Beruas, Parit, Lumut, Sitiawan, Pulau Pangkor",
    "PRK06": "Selama, Taiping, Bagan Serai, Parit Buntar",
    "PRK07": "Bukit Larut",
    # Perlis
    "PLS01": "Kangar, Padang Besar, Arau",
    # Sabah
    "SBH01": "Bahagian Sandakan (Timur), Bukit Garam, Semawang, Temanggong, Tambisan, Bandar Sandakan, Sukau",
    "SBH02": "Bahagian Sandakan (Barat), Pinangah, Terusan, Beluran, Kuamut, Telupit",
    "SBH03": "Bahagian Tawau (Timur), Bandar Tawau, Balong, Merotai, Kalabakan",
    "SBH04": "Bahagian Tawau (Barat), Kunak, Lahad Datu, Silabukan, Tungku, Sahabat, Semporna",
    "SBH05": "Kudat, Kota Marudu, Pitas, Pulau Banggi, Bahagian Kudat",
    "SBH06": "Gunung Kinabalu",
    "SBH07": "Kota Kinabalu, Ranau, Kota Belud, Tuaran, Penampang, Papar, Putatan, Bahagian Pantai Barat",
    "SBH08": "Pensiangan, Keningau, Tambunan, Nabawan, Bahagian Pendalaman",
    "SBH09": "Sipitang, Membakut, Beaufort, Kuala Penyu, Weston, Tenom, Long Pasia, Bahagian Pendalaman",
    # Sarawak
    "SWK01": "Limbang, Lawas, Sundar, Trusan",
    "SWK02": "Miri, Niah, Bekenu, Sibuti, Marudi",
    "SWK03": "Pandan, Belaga, Suai, Tatau, Sebauh, Bintulu",
    "SWK04": "Sibu, Mukah, Dalat, Song, Igan, Oya, Balingian, Kanowit, Kapit",
    "SWK05": "Sarikei, Meradong, Julau, Rajang, Bitangor, Belawai",
    "SWK06": "Lubok Antu, Sri Aman, Roban, Debak, Kabong, Lingga, Engkelili, Betong, Spaoh, Pusa, Saratok",
    "SWK07": "Serian, Simunjan, Samarahan, Sebuyau, Meludam",
    "SWK08": "Kuching, Bau, Lundu, Sematan",
    "SWK09": "Zon Khas (Kampung Patarikan)",
    # Selangor
    "SGR01": "Gombak, Petaling, Sepang, Hulu Langat, Hulu Selangor, Rawang, S.Alam",
    "SGR02": "Sabak Bernam, Kuala Selangor",
    "SGR03": "Klang, Kuala Langat",
    # Terengganu
    "TRG01": "Kuala Terengganu, Marang, Kuala Nerus",
    "TRG02": "Besut, Setiu",
    "TRG03": "Hulu Terengganu",
    "TRG04": "Dungun, Kemaman",
    # Wilayah Persekutuan
    "WLY01": "Kuala Lumpur, Putrajaya",
    "WLY02": "Labuan",
}

_STATE_BY_PREFIX = {
    "JHR": "Johor",
    "KDH": "Kedah",
    "KTN": "Kelantan",
    "MLK": "Melaka",
    "NGS": "Negeri Sembilan",
    "PHG": "Pahang",
    "PNG": "Pulau Pinang",
    "PRK": "Perak",
    "PLS": "Perlis",
    "SBH": "Sabah",
    "SWK": "Sarawak",
    "SGR": "Selangor",
    "TRG": "Terengganu",
    "WLY": "Wilayah Persekutuan",
}

ZONE_STATES: Dict[str, str] = {code: _STATE_BY_PREFIX[code[:3]] for code in ZONES}

# (state keyword, default zone, [(city keywords, zone), ...]) for states beyond
# the core Klang Valley/Johor rules. Checked in order; first city match wins.
_STATE_CITY_RULES = [
    ("KEDAH", "KDH01", [
        (("LANGKAWI",), "KDH06"),
        (("GUNUNG JERAI", "JERAI"), "KDH07"),
        (("KULIM", "BANDAR BAHARU"), "KDH05"),
        (("BALING",), "KDH04"),
        (("PADANG TERAP", "SIK"), "KDH03"),
        (("KUALA MUDA", "SUNGAI PETANI", "YAN", "PENDANG"), "KDH02"),
    ]),
    ("KELANTAN", "KTN01", [
        (("GUA MUSANG", "GALAS", "BERTAM"), "KTN03"),
    ]),
    ("NEGERI SEMBILAN", "NGS02", [
        (("TAMPIN", "JEMPOL"), "NGS01"),
    ]),
    ("PAHANG", "PHG02", [
        (("TIOMAN",), "PHG01"),
        (("CAMERON", "GENTING HIGHLANDS", "FRASER"), "PHG06"),
        (("GENTING SEMPAH", "JANDA BAIK", "BUKIT TINGGI"), "PHG05"),
        (("BENTONG", "LIPIS", "RAUB"), "PHG04"),
        (("JERANTUT", "TEMERLOH", "MARAN", "BERA", "CHENOR", "JENGKA"), "PHG03"),
    ]),
    ("PERAK", "PRK02", [
        (("BUKIT LARUT",), "PRK07"),
        (("TAPAH", "SLIM RIVER", "TANJUNG MALIM"), "PRK01"),
        (("LENGGONG", "PENGKALAN HULU", "GRIK", "GERIK"), "PRK03"),
        (("TEMENGOR", "BELUM"), "PRK04"),
        (("TELUK INTAN", "BAGAN DATUK", "SERI ISKANDAR", "BERUAS", "LUMUT", "SITIAWAN", "PANGKOR"), "PRK05"),
        (("TAIPING", "SELAMA", "BAGAN SERAI", "PARIT BUNTAR"), "PRK06"),
    ]),
    ("SABAH", "SBH07", [
        (("GUNUNG KINABALU",), "SBH06"),
        (("SANDAKAN",), "SBH01"),
        (("BELURAN", "TELUPIT"), "SBH02"),
        (("LAHAD DATU", "KUNAK", "SEMPORNA"), "SBH04"),
        (("TAWAU", "KALABAKAN"), "SBH03"),
        (("KUDAT", "KOTA MARUDU", "PITAS", "BANGGI"), "SBH05"),
        (("KENINGAU", "TAMBUNAN", "NABAWAN", "PENSIANGAN"), "SBH08"),
        (("SIPITANG", "BEAUFORT", "TENOM", "KUALA PENYU", "MEMBAKUT"), "SBH09"),
    ]),
    ("SARAWAK", "SWK08", [
        (("LIMBANG", "LAWAS"), "SWK01"),
        (("MIRI", "MARUDI"), "SWK02"),
        (("BINTULU", "BELAGA", "TATAU"), "SWK03"),
        (("SIBU", "MUKAH", "KAPIT", "KANOWIT"), "SWK04"),
        (("SARIKEI", "JULAU", "MERADONG"), "SWK05"),
        (("SRI AMAN", "BETONG", "SARATOK", "LUBOK ANTU"), "SWK06"),
        (("SERIAN", "SAMARAHAN", "SIMUNJAN"), "SWK07"),
    ]),
    ("TERENGGANU", "TRG01", [
        (("BESUT", "SETIU"), "TRG02"),
        (("HULU TERENGGANU",), "TRG03"),
        (("DUNGUN", "KEMAMAN"), "TRG04"),
    ]),
]


def is_valid_zone(code: str) -> bool:
    return isinstance(code, str) and code.upper() in ZONES


def zones_for_state(state: str) -> List[str]:
    """Zone codes belonging to a state name (case-insensitive), in table order."""
    wanted = (state or "").strip().lower()
    return [code for code, name in ZONE_STATES.items() if name.lower() == wanted]


def _contains_any(text: str, keywords) -> bool:
    return any(k in text for k in keywords)


def resolve_zone(state: str, city: str = "") -> str:
    """Best-effort zone code for a free-text state and city.

    State rules are checked first, city rules second within a state. Anything
    unrecognised falls back to Kuala Lumpur (WLY01).
    """
    state_upper = (state or "").upper()
    city_upper = (city or "").upper()

    # Wilayah Persekutuan
    if "KUALA LUMPUR" in state_upper or "KUALA LUMPUR" in city_upper:
        return "WLY01"
    if "PUTRAJAYA" in state_upper or "PUTRAJAYA" in city_upper:
        return "WLY01"
    if "LABUAN" in state_upper or "LABUAN" in city_upper:
        return "WLY02"

    if "SELANGOR" in state_upper:
        if _contains_any(city_upper, ("SABAK", "KUALA SELANGOR")):
            return "SGR02"
        if _contains_any(city_upper, ("KLANG", "KUALA LANGAT")):
            return "SGR03"
        return "SGR01"

    if "JOHOR" in state_upper:
        if "PULAU AUR" in city_upper:
            return "JHR01"
        if _contains_any(city_upper, ("KLUANG", "PONTIAN")):
            return "JHR03"
        if _contains_any(city_upper, ("BATU PAHAT", "MUAR")):
            return "JHR04"
        return "JHR02"

    if _contains_any(state_upper, ("MELAKA", "MALACCA")):
        return "MLK01"
    if _contains_any(state_upper, ("PULAU PINANG", "PENANG")):
        return "PNG01"
    if "PERLIS" in state_upper:
        return "PLS01"

    for state_keyword, default_zone, city_rules in _STATE_CITY_RULES:
        if state_keyword in state_upper:
            for keywords, zone in city_rules:
                if _contains_any(city_upper, keywords):
                    return zone
            return default_zone

    return DEFAULT_ZONE
