"""HTTP client for the Diyanet awqatsalah API.

The access token is held by the client instance. Requests are authenticated
lazily, a 401 triggers one re-login and replay, and transient failures
(timeouts, connection errors, 5xx) go through ``retry.call_with_retry``.
"""

import logging

import requests

from namazvakti.retry import NO_RETRY, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

API_PREFIX = "/apigateway/awqatsalah/api"
PERIODS = ("Daily", "Weekly", "Monthly")


class DiyanetApiError(Exception):
    """Request failed. ``status`` is the HTTP status, or None for transport errors."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class AuthenticationError(DiyanetApiError):
    pass


def is_transient(exc: Exception) -> bool:
    if isinstance(exc, (requests.Timeout, requests.ConnectionError)):
        return True
    if isinstance(exc, DiyanetApiError) and not isinstance(exc, AuthenticationError):
        return exc.status is None or exc.status >= 500
    return False


class DiyanetClient:
    def __init__(
        self,
        base_url: str,
        client_id: str = "",
        username: str = "",
        password: str = "",
        user_agent: str = "Dart/3.5 (dart:io)",
        timeout: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        session: requests.Session | None = None,
        sleep=None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self._credentials = {
            "client_id": client_id,
            "client_secret": "-",
            "grant_type": "password",
            "username": username,
            "password": password,
        }
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": user_agent})
        self._sleep = sleep
        self.access_token = None

    @classmethod
    def from_settings(cls, settings) -> "DiyanetClient":
        return cls(
            base_url=settings.api_base_url,
            client_id=settings.api_client_id,
            username=settings.api_username,
            password=settings.api_password,
            user_agent=settings.api_user_agent,
            timeout=settings.request_timeout,
            retry_policy=RetryPolicy(max_retries=settings.max_retries, base_delay=settings.retry_base_delay),
        )

    def close(self) -> None:
        self._session.close()
        self.access_token = None

    # auth

    def login(self) -> str:
        """Fetch a new access token with the password grant."""
        if not self._credentials["username"] or not self._credentials["password"]:
            raise AuthenticationError("API credentials are not configured")
        try:
            resp = self._session.post(
                f"{self.base_url}/auth/jwt",
                data=self._credentials,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise DiyanetApiError(f"Login request failed: {e}") from e
        if resp.status_code >= 400:
            raise AuthenticationError(f"Login rejected with HTTP {resp.status_code}", resp.status_code)
        try:
            token = resp.json().get("access_token")
        except ValueError as e:
            raise AuthenticationError("Login response is not JSON") from e
        if not token:
            raise AuthenticationError("Login response has no access_token")
        self.access_token = token
        logger.info("Obtained API access token")
        return token

    def _ensure_token(self) -> None:
        if not self.access_token:
            self.login()

    # transport

    def _send(self, method: str, path: str, payload=None):
        self._ensure_token()
        url = f"{self.base_url}{API_PREFIX}{path}"

        def _do():
            headers = {"Authorization": f"Bearer {self.access_token}"}
            try:
                return self._session.request(method, url, json=payload, headers=headers, timeout=self.timeout)
            except requests.RequestException as e:
                raise DiyanetApiError(f"{method} {path} failed: {e}") from e

        resp = _do()
        if resp.status_code == 401:
            logger.warning("API returned 401, refreshing token")
            self.login()
            resp = _do()
        if resp.status_code >= 400:
            raise DiyanetApiError(f"{method} {path} failed with HTTP {resp.status_code}", resp.status_code)
        try:
            body = resp.json()
        except ValueError as e:
            raise DiyanetApiError(f"{method} {path} returned invalid JSON", resp.status_code) from e
        if not isinstance(body, dict):
            raise DiyanetApiError(f"{method} {path} returned unexpected body", resp.status_code)
        return body.get("data")

    def request(self, method: str, path: str, payload=None, retry: bool = True):
        """Send an API request and return the ``data`` member of the response."""
        policy = self.retry_policy if retry else NO_RETRY
        kwargs = {"description": f"{method} {path}"}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return call_with_retry(lambda: self._send(method, path, payload), policy, is_transient, **kwargs)

    # endpoints

    def get_countries(self) -> list:
        return self.request("GET", "/Place/Countries") or []

    def get_states(self, country_id: int) -> list:
        return self.request("GET", f"/Place/States/{country_id}") or []

    def get_districts(self, state_id: int) -> list:
        return self.request("GET", f"/Place/Cities/{state_id}") or []

    def get_city_from_location(self, lat: float, lon: float, retry: bool = True) -> dict | None:
        return self.request(
            "POST", "/Location/CityFromLocation", {"latitude": lat, "longitude": lon}, retry=retry
        )

    def get_city_detail(self, city_id: str) -> dict | None:
        return self.request("GET", f"/Place/CityDetail/{city_id}")

    def get_prayer_times(self, place_id, period: str = "Monthly") -> list:
        if period not in PERIODS:
            raise ValueError(f"Unknown period {period!r}, expected one of {PERIODS}")
        return self.request("GET", f"/PrayerTime/{period}/{place_id}") or []

    def get_esmaul_husna(self, language: str = "tr") -> dict | None:
        """Name of the day; served outside the awqatsalah prefix."""
        self._ensure_token()
        url = f"{self.base_url}/apigateway/apisuperapp/EsmaulHusna/esmaul-husna-of-the-day/{language}"
        try:
            resp = self._session.get(
                url, headers={"Authorization": f"Bearer {self.access_token}"}, timeout=self.timeout
            )
            resp.raise_for_status()
            return resp.json().get("data")
        except (requests.RequestException, ValueError) as e:
            raise DiyanetApiError(f"Esmaul Husna request failed: {e}") from e
