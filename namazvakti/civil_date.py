"""Civil date of the active location.

"Today" is the date at the prayer-time location, which can differ from the
machine's date. Time zones are looked up once per (country, city, region)
with the open-meteo geocoding search and cached in the store for good.
"""

import datetime
import logging

import pytz
import requests

from namazvakti.identity import normalize_name

logger = logging.getLogger(__name__)

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"

# localized country names -> ISO code, for matching geocoding results
COUNTRY_ALIASES = {
    "tr": ["turkiye", "turkey"],
    "us": ["abd", "amerika", "united states", "usa", "amerika birlesik devletleri"],
    "gb": ["ingiltere", "birlesik krallik", "united kingdom", "uk", "england"],
    "de": ["almanya", "germany", "deutschland"],
    "fr": ["fransa", "france"],
    "nl": ["hollanda", "netherlands", "nederland"],
    "be": ["belcika", "belgium"],
    "at": ["avusturya", "austria", "osterreich"],
    "ch": ["isvicre", "switzerland", "schweiz"],
    "se": ["isvec", "sweden"],
    "no": ["norvec", "norway"],
    "dk": ["danimarka", "denmark"],
    "it": ["italya", "italy", "italia"],
    "es": ["ispanya", "spain", "espana"],
    "ru": ["rusya", "russia", "rusya federasyonu"],
    "az": ["azerbaycan", "azerbaijan"],
    "ge": ["gurcistan", "georgia"],
    "kz": ["kazakistan", "kazakhstan"],
    "uz": ["ozbekistan", "uzbekistan"],
    "sa": ["suudi arabistan", "saudi arabia"],
    "ae": ["birlesik arap emirlikleri", "united arab emirates", "uae"],
    "eg": ["misir", "egypt"],
    "iq": ["irak", "iraq"],
    "ir": ["iran"],
    "sy": ["suriye", "syria"],
    "pk": ["pakistan"],
    "in": ["hindistan", "india"],
    "id": ["endonezya", "indonesia"],
    "my": ["malezya", "malaysia"],
    "au": ["avustralya", "australia"],
    "ca": ["kanada", "canada"],
    "jp": ["japonya", "japan"],
    "cn": ["cin", "china"],
}


def local_today(zone: str | None = None, now: datetime.datetime | None = None) -> str:
    """
    Return today's date as YYYY-MM-DD in ``zone``.
    Unknown or missing zones fall back to the machine's local date.
    """
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    if now.tzinfo is None:
        now = now.astimezone()
    if zone:
        try:
            return now.astimezone(pytz.timezone(zone)).strftime("%Y-%m-%d")
        except pytz.UnknownTimeZoneError:
            logger.warning(f"Unknown time zone {zone!r}, using local date")
    return now.astimezone().strftime("%Y-%m-%d")


def country_matches(result: dict, country: str) -> bool:
    wanted = normalize_name(country)
    if not wanted:
        return False
    name = normalize_name(result.get("country"))
    code = normalize_name(result.get("country_code"))

    for iso, aliases in COUNTRY_ALIASES.items():
        if code == iso and any(a == wanted or a in wanted or wanted in a for a in aliases):
            return True
    if name and (name in wanted or wanted in name):
        return True
    return code == wanted


class TimezoneResolver:
    def __init__(self, store, url: str = GEOCODING_URL, timeout: float = 10.0,
                 session: requests.Session | None = None):
        self.store = store
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    def cached(self, country: str, city: str, region: str) -> str | None:
        return self.store.load_cached_timezone(country, city, region)

    def resolve(self, country: str, city: str, region: str = "", online: bool = True) -> str | None:
        """
        Return the IANA zone for the place, or None if it cannot be found.
        Lookup order is region (when it differs from city), city, country.
        """
        if not country and not city:
            return None
        zone = self.cached(country, city, region)
        if zone:
            return zone
        if not online:
            return None

        queries = []
        if region and normalize_name(region) != normalize_name(city):
            queries.append(region)
        if city:
            queries.append(city)
        if country:
            queries.append(country)

        for query in queries:
            zone = self._search(query, country)
            if zone:
                logger.info(f"Resolved time zone {zone} for {query!r}")
                self.store.save_cached_timezone(country, city, region, zone)
                return zone
        logger.info(f"No time zone found for {region or city}, {country}")
        return None

    def _search(self, query: str, country: str) -> str | None:
        try:
            resp = self._session.get(
                self.url,
                params={"name": query, "count": 10, "language": "tr", "format": "json"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            results = resp.json().get("results") or []
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Time zone lookup for {query!r} failed: {e}")
            return None

        for result in results:
            if result.get("timezone") and country_matches(result, country):
                return result["timezone"]
        if not country and results and results[0].get("timezone"):
            return results[0]["timezone"]
        return None
