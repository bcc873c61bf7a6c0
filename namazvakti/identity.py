"""Decide whether two place values refer to the same location.

Places reach the engine from three directions: the manual hierarchy
(``PlaceItem`` / ``SelectedLocation``), device fixes and map picks
(``CityDetail`` / ``GPSCityInfo``) and the saved-locations list. Ids are
trusted when both sides carry one; otherwise the normalised district name
(or city name when there is no district) is compared.
"""

import unicodedata

from namazvakti.models import CityDetail, GPSCityInfo, PlaceItem, SelectedLocation


def normalize_name(name: str | None) -> str:
    """Lower-case, fold Turkish I variants, strip diacritics and trim."""
    if not name:
        return ""
    text = name.replace("İ", "i").replace("ı", "i").replace("I", "i")
    text = unicodedata.normalize("NFD", text.lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return text.strip()


def normalize_id(value) -> str:
    """Return a comparable id string, or "" when the id is absent or zero."""
    if value is None or isinstance(value, bool):
        return ""
    text = str(value).strip()
    if not text:
        return ""
    try:
        number = int(text)
    except ValueError:
        return text
    return "" if number == 0 else str(number)


def identity_of(place) -> tuple[str, str]:
    """Return ``(id, normalised name)`` for any supported place value."""
    if place is None:
        return "", ""
    if isinstance(place, SelectedLocation):
        named = place.district if place.district and place.district.name else place.city
        place_id = place.district.id if place.district else None
        return normalize_id(place_id), normalize_name(named.name if named else "")
    if isinstance(place, PlaceItem):
        return normalize_id(place.id), normalize_name(place.name)
    if isinstance(place, (GPSCityInfo, CityDetail)):
        return normalize_id(place.id), normalize_name(place.name or place.city)
    if isinstance(place, dict):
        return normalize_id(place.get("id")), normalize_name(place.get("name") or place.get("city"))
    raise TypeError(f"Unsupported place value: {type(place).__name__}")


def is_same_location(a, b) -> bool:
    a_id, a_name = identity_of(a)
    b_id, b_name = identity_of(b)
    if a_id and b_id:
        return a_id == b_id
    return bool(a_name) and a_name == b_name
