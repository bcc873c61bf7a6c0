"""Desktop notifications for location events."""

import logging

from plyer import notification as plyer_notification

from namazvakti.events import FetchFailed, LocationChangeDetected, LocationResolved, SameLocation

logger = logging.getLogger(__name__)

APP_NAME = "Namaz Vakti"
APP_ICON = ""  # Path to icon file; empty = default


def _send_plyer(title: str, message: str, timeout: int = 10) -> None:
    """Send a desktop notification via plyer (cross-platform)."""
    try:
        kwargs = dict(
            app_name=APP_NAME,
            title=title,
            message=message,
            timeout=timeout,
        )
        if APP_ICON:
            kwargs["app_icon"] = APP_ICON
        plyer_notification.notify(**kwargs)
    except Exception as e:
        # plyer raises NotImplementedError when the platform has no backend
        logger.warning(f"Desktop notification failed: {e}")


def notify_location_change(display_name: str, callback=None) -> None:
    """
    Tell the user the device appears to be somewhere else.
    Optionally calls callback(title, message).
    """
    title = "📍 Location changed"
    message = f"You seem to be in {display_name}. Update prayer times for this location?"
    _send_plyer(title, message, timeout=30)
    if callback:
        callback(title, message)


def notify_location_resolved(label: str, callback=None) -> None:
    title = "🕌 Prayer times updated"
    message = f"Showing prayer times for {label}."
    _send_plyer(title, message)
    if callback:
        callback(title, message)


def notify_same_location(label: str, callback=None) -> None:
    title = "📍 Same location"
    message = f"{label} is already selected."
    _send_plyer(title, message, timeout=5)
    if callback:
        callback(title, message)


def notify_fetch_failed(error: str, callback=None) -> None:
    title = "⚠ Prayer times unavailable"
    message = f"Could not download prayer times, showing saved data. ({error})"
    _send_plyer(title, message, timeout=15)
    if callback:
        callback(title, message)


def attach(bus, callback=None) -> None:
    """Subscribe desktop notifications to the engine events on ``bus``."""
    bus.subscribe(lambda e: notify_location_change(e.display_name, callback), LocationChangeDetected)
    bus.subscribe(lambda e: notify_location_resolved(e.label, callback), LocationResolved)
    bus.subscribe(lambda e: notify_same_location(e.label, callback), SameLocation)
    bus.subscribe(lambda e: notify_fetch_failed(e.error, callback), FetchFailed)
