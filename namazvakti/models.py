"""Data types shared by the location engine, the cache and the store."""

from dataclasses import dataclass, field
from enum import Enum


class LocationMode(str, Enum):
    """Which source the active location came from."""

    GPS = "gps"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value) -> "LocationMode | None":
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float

    @classmethod
    def from_dict(cls, data: dict) -> "Coordinates":
        return cls(lat=float(data["lat"]), lon=float(data["lon"]))

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon}


@dataclass(frozen=True)
class PlaceItem:
    """One node of the country -> state -> district hierarchy.

    ``id`` is 0 for places that do not come from the hierarchy itself
    (for example a district name built from a GPS lookup).
    """

    id: int
    code: str
    name: str

    @classmethod
    def from_dict(cls, data: dict) -> "PlaceItem":
        try:
            place_id = int(data.get("id") or 0)
        except (TypeError, ValueError):
            place_id = 0
        return cls(
            id=place_id,
            code=str(data.get("code") or ""),
            name=str(data.get("name") or ""),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "code": self.code, "name": self.name}


@dataclass(frozen=True)
class SelectedLocation:
    country: PlaceItem | None = None
    city: PlaceItem | None = None
    district: PlaceItem | None = None

    @property
    def is_complete(self) -> bool:
        return all((self.country, self.city, self.district))

    @property
    def label(self) -> str:
        parts = [p.name for p in (self.district, self.city) if p and p.name]
        return ", ".join(parts)

    @classmethod
    def from_dict(cls, data: dict) -> "SelectedLocation":
        def _place(key):
            raw = data.get(key)
            return PlaceItem.from_dict(raw) if isinstance(raw, dict) else None

        return cls(country=_place("country"), city=_place("city"), district=_place("district"))

    def to_dict(self) -> dict:
        return {
            "country": self.country.to_dict() if self.country else None,
            "city": self.city.to_dict() if self.city else None,
            "district": self.district.to_dict() if self.district else None,
        }


@dataclass(frozen=True)
class CityDetail:
    """Reverse-geocoding answer: the provider's place for a coordinate."""

    id: str
    name: str
    city: str
    country: str
    qibla_angle: str = ""
    geographic_qibla_angle: str = ""
    distance_to_kaaba: str = ""

    @property
    def display_name(self) -> str:
        return ", ".join(p for p in (self.name, self.city) if p)

    @classmethod
    def from_dict(cls, data: dict) -> "CityDetail":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            city=str(data.get("city") or ""),
            country=str(data.get("country") or ""),
            qibla_angle=str(data.get("qiblaAngle") or ""),
            geographic_qibla_angle=str(data.get("geographicQiblaAngle") or ""),
            distance_to_kaaba=str(data.get("distanceToKaaba") or ""),
        )


@dataclass(frozen=True)
class GPSCityInfo:
    """Active place when the location came from a device fix or map pick."""

    id: str
    name: str
    city: str
    country: str
    coords: Coordinates | None = None

    @property
    def label(self) -> str:
        return ", ".join(p for p in (self.name, self.city) if p)

    @classmethod
    def from_city_detail(cls, detail: CityDetail, coords: Coordinates | None = None) -> "GPSCityInfo":
        return cls(id=detail.id, name=detail.name, city=detail.city, country=detail.country, coords=coords)

    @classmethod
    def from_dict(cls, data: dict) -> "GPSCityInfo":
        coords = data.get("coords")
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            city=str(data.get("city") or ""),
            country=str(data.get("country") or ""),
            coords=Coordinates.from_dict(coords) if isinstance(coords, dict) else None,
        )

    def to_dict(self) -> dict:
        data = {"id": self.id, "name": self.name, "city": self.city, "country": self.country}
        if self.coords:
            data["coords"] = self.coords.to_dict()
        return data


# PrayerTime attribute -> JSON key, for the optional fields.
_OPTIONAL_PRAYER_KEYS = {
    "hijri_date": "hijriDate",
    "hijri_month": "hijriMonth",
    "hijri_year": "hijriYear",
    "gregorian_date_long": "gregorianDateLong",
    "hijri_date_long": "hijriDateLong",
}

TIME_FIELDS = ("fajr", "sun", "dhuhr", "asr", "maghrib", "isha")


@dataclass(frozen=True)
class PrayerTime:
    """One calendar day of prayer times. Times are "HH:MM" strings."""

    date: str
    fajr: str
    sun: str
    dhuhr: str
    asr: str
    maghrib: str
    isha: str
    hijri_date: str | None = None
    hijri_month: str | None = None
    hijri_year: str | None = None
    gregorian_date_long: str | None = None
    hijri_date_long: str | None = None
    extra: dict = field(default_factory=dict)

    @property
    def day(self) -> str:
        # older caches stored full ISO timestamps
        return self.date.split("T")[0]

    @classmethod
    def from_dict(cls, data: dict) -> "PrayerTime":
        known = {"date", *TIME_FIELDS, *_OPTIONAL_PRAYER_KEYS.values()}
        kwargs = {"date": str(data["date"])}
        for name in TIME_FIELDS:
            kwargs[name] = str(data[name])
        for attr, key in _OPTIONAL_PRAYER_KEYS.items():
            if data.get(key) is not None:
                kwargs[attr] = str(data[key])
        kwargs["extra"] = {k: v for k, v in data.items() if k not in known}
        return cls(**kwargs)

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data["date"] = self.date
        for name in TIME_FIELDS:
            data[name] = getattr(self, name)
        for attr, key in _OPTIONAL_PRAYER_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        return data

    def timings(self) -> dict:
        return {name: getattr(self, name) for name in TIME_FIELDS}


def series_from_dicts(rows) -> list[PrayerTime]:
    return [PrayerTime.from_dict(row) for row in rows or []]


def series_to_dicts(series) -> list[dict]:
    return [pt.to_dict() for pt in series]
