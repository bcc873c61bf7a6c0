"""Fetch prayer-time series from the Diyanet API and convert them."""

import datetime

from namazvakti.models import PrayerTime

PRAYER_NAMES = ["fajr", "sun", "dhuhr", "asr", "maghrib", "isha"]
PRAYER_DISPLAY = {
    "fajr": "İmsak / Fajr",
    "sun": "Güneş / Sunrise",
    "dhuhr": "Öğle / Dhuhr",
    "asr": "İkindi / Asr",
    "maghrib": "Akşam / Maghrib",
    "isha": "Yatsı / Isha",
}

DEFAULT_PERIOD = "Monthly"


def convert_date(short_date: str) -> str:
    """'26.11.2025' -> '2025-11-26'."""
    day, month, year = short_date.strip().split(".")
    return f"{int(year):04d}-{int(month):02d}-{int(day):02d}"


def convert_row(row: dict) -> PrayerTime:
    """
    Convert one remote row into a PrayerTime.

    Remote rows carry ``gregorianDateShort`` as DD.MM.YYYY, ``sunrise``
    instead of ``sun``, and Hijri dates as "DD.MM.YYYY" (short) and
    "DD MonthName YYYY" (long).
    Raises ValueError / KeyError on malformed rows.
    """
    hijri_short = str(row.get("hijriDateShort") or "")
    hijri_long = str(row.get("hijriDateLong") or "")
    short_parts = hijri_short.split(".")
    long_parts = hijri_long.split(" ")

    return PrayerTime(
        date=convert_date(row["gregorianDateShort"]),
        fajr=str(row["fajr"])[:5],
        sun=str(row["sunrise"])[:5],
        dhuhr=str(row["dhuhr"])[:5],
        asr=str(row["asr"])[:5],
        maghrib=str(row["maghrib"])[:5],
        isha=str(row["isha"])[:5],
        hijri_date=short_parts[0] if hijri_short else None,
        hijri_month=long_parts[1] if len(long_parts) > 1 else None,
        hijri_year=short_parts[2] if len(short_parts) > 2 else None,
        gregorian_date_long=row.get("gregorianDateLong"),
        hijri_date_long=row.get("hijriDateLong"),
    )


def convert_rows(rows) -> list[PrayerTime]:
    """Convert remote rows, sorted by date with duplicate dates dropped."""
    by_date = {}
    for row in rows or []:
        pt = convert_row(row)
        by_date.setdefault(pt.date, pt)
    return [by_date[d] for d in sorted(by_date)]


def fetch_prayer_series(client, place_id, period: str = DEFAULT_PERIOD) -> list[PrayerTime]:
    """
    Fetch and convert the prayer times of ``place_id``.

    Raises DiyanetApiError on transport/API failure and ValueError when the
    payload cannot be converted.
    """
    rows = client.get_prayer_times(place_id, period)
    try:
        return convert_rows(rows)
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Malformed prayer time row for place {place_id}: {e}") from e


def time_str_to_dt(time_str: str, day: datetime.date, tz=None) -> datetime.datetime:
    """
    Combine 'HH:MM' with ``day``.
    If tz (a pytz zone) is given the result is localized, otherwise naive.
    """
    hour, minute = map(int, time_str.split(":"))
    naive = datetime.datetime.combine(day, datetime.time(hour, minute))
    return tz.localize(naive) if tz else naive


def get_next_prayer(prayer_time: PrayerTime, now: datetime.datetime, tz=None) -> tuple:
    """
    Return (prayer_name, prayer_datetime) of the next prayer of that day
    after ``now``, or (None, None) if all have passed.
    """
    day = datetime.date.fromisoformat(prayer_time.day)
    for name in PRAYER_NAMES:
        if name == "sun":
            continue  # sunrise is not a prayer
        prayer_dt = time_str_to_dt(getattr(prayer_time, name), day, tz)
        if prayer_dt > now:
            return name, prayer_dt
    return None, None


def seconds_until(target_dt: datetime.datetime, now: datetime.datetime = None) -> int:
    """Return seconds from now until target_dt (can be negative if past)."""
    if now is None:
        now = datetime.datetime.now(target_dt.tzinfo)
    delta = target_dt - now
    return int(delta.total_seconds())
