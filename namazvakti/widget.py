"""Snapshots of the active schedule for home-screen widgets and other readers."""

import json
import logging
import os
import tempfile
import threading

logger = logging.getLogger(__name__)

WIDGET_FILE = "widget.json"
WIDGET_MONTHLY_FILE = "widget_monthly.json"


def widget_day(prayer_time) -> dict:
    return {
        "date": prayer_time.day,
        **prayer_time.timings(),
        "gregorianDateLong": prayer_time.gregorian_date_long or "",
        "hijriDateLong": prayer_time.hijri_date_long or "",
    }


class WidgetPublisher:
    """Writes widget snapshots on background threads. Failures are only logged.

    Writes are serialized per publisher and each snapshot is numbered when it
    is dispatched; a snapshot older than the one already on disk is dropped,
    so the newest one always lands last.
    """

    def __init__(self, directory: str, background: bool = True):
        self.directory = directory
        self.background = background
        self._lock = threading.Lock()
        self._seq_lock = threading.Lock()
        self._seq = 0
        self._written = {}

    def _write(self, filename: str, payload: dict, seq: int = 0) -> None:
        path = os.path.join(self.directory, filename)
        with self._lock:
            if seq and seq <= self._written.get(filename, 0):
                logger.debug(f"Skipping stale widget snapshot {seq} for {filename}")
                return
            tmp_path = None
            try:
                os.makedirs(self.directory, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=filename, suffix=".tmp")
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, path)
                tmp_path = None
                self._written[filename] = seq
            except OSError as e:
                logger.error(f"Error updating widget file {path}: {e}")
            finally:
                if tmp_path is not None and os.path.exists(tmp_path):
                    os.remove(tmp_path)

    def _dispatch(self, filename: str, payload: dict) -> threading.Thread | None:
        with self._seq_lock:
            self._seq += 1
            seq = self._seq
        if not self.background:
            self._write(filename, payload, seq)
            return None
        thread = threading.Thread(target=self._write, args=(filename, payload, seq), daemon=True)
        thread.start()
        return thread

    def update_widget(self, label: str, prayer_time, detail: dict | None = None,
                      timezone_id: str | None = None):
        detail = detail or {}
        payload = {
            "locationName": label,
            **widget_day(prayer_time),
            "country": detail.get("country", ""),
            "city": detail.get("city", ""),
            "district": detail.get("district", ""),
            "timezoneId": timezone_id or "",
        }
        return self._dispatch(WIDGET_FILE, payload)

    def sync_monthly_cache(self, label: str, series, detail: dict | None = None,
                           timezone_id: str | None = None):
        if not series:
            return None
        detail = detail or {}
        payload = {
            "locationName": label,
            "timezoneId": timezone_id or "",
            "country": detail.get("country", ""),
            "city": detail.get("city", ""),
            "district": detail.get("district", ""),
            "days": [widget_day(pt) for pt in series],
        }
        return self._dispatch(WIDGET_MONTHLY_FILE, payload)
