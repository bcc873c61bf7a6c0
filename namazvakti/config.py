"""User settings: JSON file in the data directory plus environment overrides."""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields

logger = logging.getLogger(__name__)

DATA_DIR = os.environ.get("NAMAZVAKTI_HOME") or os.path.join(os.path.expanduser("~"), ".namazvakti")
CONFIG_FILE = os.path.join(DATA_DIR, "config.json")

_ENV_OVERRIDES = {
    "NAMAZVAKTI_API_USERNAME": "api_username",
    "NAMAZVAKTI_API_PASSWORD": "api_password",
    "NAMAZVAKTI_CLIENT_ID": "api_client_id",
}


@dataclass
class Settings:
    data_dir: str = DATA_DIR
    log_level: str = "INFO"

    api_base_url: str = "https://t061.diyanet.gov.tr"
    api_client_id: str = ""
    api_username: str = ""
    api_password: str = ""
    api_user_agent: str = "Dart/3.5 (dart:io)"
    request_timeout: float = 30.0
    max_retries: int = 3
    retry_base_delay: float = 1.0

    geocoding_url: str = "https://geocoding-api.open-meteo.com/v1/search"
    ip_location_url: str = "http://ip-api.com/json/"
    connectivity_url: str = "https://t061.diyanet.gov.tr"
    location_timeout: float = 15.0

    # "age": manual cache refetched every manual_max_age_days;
    # "coverage": manual cache checked like the GPS cache.
    manual_freshness: str = "age"
    manual_max_age_days: int = 29
    coverage_days: int = 30

    startup_check_delay: float = 3.0
    foreground_min_interval: float = 10.0
    tick_seconds: float = 60.0
    freshness_check_ticks: int = 60

    notifications: bool = True
    widget_enabled: bool = True

    @property
    def store_path(self) -> str:
        return os.path.join(self.data_dir, "store.json")

    @property
    def widget_dir(self) -> str:
        return os.path.join(self.data_dir, "widget")

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        known = {f.name: f for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown setting: {key}")
                continue
            default = known[key].default
            if isinstance(default, bool) and not isinstance(value, bool):
                kwargs[key] = str(value).strip().lower() in ("1", "true", "yes", "on")
                continue
            try:
                kwargs[key] = type(default)(value)
            except (TypeError, ValueError):
                logger.warning(f"Invalid value for {key}: {value!r}, using default")
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)


def load_settings(path: str | None = None) -> Settings:
    """Load settings from ``path`` (default CONFIG_FILE).

    A missing or unreadable file gives the defaults. Environment variables
    listed in ``_ENV_OVERRIDES`` win over the file.
    """
    path = path or CONFIG_FILE
    data = {}
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                data = loaded
            else:
                logger.error(f"Config root must be an object: {path}")
        except (OSError, ValueError) as e:
            logger.error(f"Error loading config {path}: {e}")

    for env_name, key in _ENV_OVERRIDES.items():
        if os.environ.get(env_name):
            data[key] = os.environ[env_name]

    return Settings.from_dict(data)


def save_settings(settings: Settings, path: str | None = None) -> None:
    path = path or os.path.join(settings.data_dir, "config.json")
    os.makedirs(os.path.dirname(path), exist_ok=True)
    payload = settings.to_dict()
    # credentials stay in the environment
    payload.pop("api_password", None)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
