"""Common utilities for LiveMetro."""
import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pandas as pd

KST = timezone(timedelta(hours=9))

DOW_CODES = ["MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"]
WEEKDAYS = {"MON", "TUE", "WED", "THU", "FRI"}

DAY_NAMES_KO = {
    "MON": "월요일",
    "TUE": "화요일",
    "WED": "수요일",
    "THU": "목요일",
    "FRI": "금요일",
    "SAT": "토요일",
    "SUN": "일요일",
}

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def now_kst() -> datetime:
    return datetime.now(KST)


def dow_for(d: date) -> str:
    """date → 'MON'~'SUN'"""
    return DOW_CODES[d.weekday()]


def is_valid_dow(value: Optional[str]) -> bool:
    return value in DOW_CODES


def is_weekday(dow: str) -> bool:
    return dow in WEEKDAYS


def is_valid_time(value: Optional[str]) -> bool:
    """HH:mm 형식(00-23 / 00-59) 여부"""
    return isinstance(value, str) and _TIME_RE.match(value) is not None


def parse_time_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_minutes(minutes: int) -> str:
    minutes = int(minutes) % (24 * 60)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_time(dt: datetime) -> str:
    return dt.strftime("%H:%M")


def subtract_minutes(value: str, minutes: int) -> str:
    """HH:mm에서 분을 빼고 자정을 넘으면 전날 시각으로 감는다."""
    return format_minutes(parse_time_to_minutes(value) - minutes)


def normalize_station_name(name):
    """Normalize Korean station names."""
    if name is None or pd.isna(name):
        return ""
    name = str(name)
    name = re.sub(r"\([^)]*\)", "", name)
    name = re.sub(r"\[[^\]]*\]", "", name)
    name = re.sub(r"역$", "", name.strip())
    name = name.replace(" ", "").strip()
    return name
