"""
When I Work scheduling service client.

The session object owns the login token, the staff list and the shifts
fetched for a date range. Every call raises ScheduleProviderError on failure;
callers that must keep working without the schedule catch that one type.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pandas as pd
import requests

from taskboard.config import config
from taskboard.data.schema import ensure_shift_columns

logger = logging.getLogger(__name__)


class ScheduleProviderError(Exception):
    """Raised when the scheduling service cannot be reached or returns unusable data."""
    pass


@dataclass
class ScheduleCredentials:
    api_key: str
    email: str
    password: str

    @classmethod
    def from_config(cls) -> "ScheduleCredentials":
        return cls(
            api_key=config.wheniwork_api_key,
            email=config.wheniwork_email,
            password=config.wheniwork_password,
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.api_key and self.email and self.password)


class WhenIWorkSession:
    """Authenticated session against the When I Work API."""

    def __init__(self,
                 credentials: Optional[ScheduleCredentials] = None,
                 http: Optional[requests.Session] = None,
                 login_url: Optional[str] = None,
                 api_url: Optional[str] = None,
                 timeout: Optional[int] = None):
        self.credentials = credentials or ScheduleCredentials.from_config()
        self.http = http or requests.Session()
        self.login_url = login_url or config.wheniwork_login_url
        self.api_url = (api_url or config.wheniwork_api_url).rstrip("/")
        self.timeout = timeout or config.request_timeout_seconds

        self.token: Optional[str] = None
        self.account_user_id: Optional[str] = None
        self.users: List[Dict[str, Any]] = []
        self.shifts: pd.DataFrame = ensure_shift_columns(pd.DataFrame())
        self.loaded_range: Optional[tuple] = None

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.http.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as e:
            raise ScheduleProviderError(f"{method} {url} failed: {e}") from e
        except ValueError as e:
            raise ScheduleProviderError(f"{method} {url} returned invalid JSON") from e

        if not isinstance(payload, dict):
            raise ScheduleProviderError(f"{method} {url} returned {type(payload).__name__}, expected an object")
        return payload

    def _token_headers(self) -> Dict[str, str]:
        return {"W-Token": self.ensure_authenticated()}

    # ------------------------------------------------------------------
    # Provider calls
    # ------------------------------------------------------------------

    def login(self) -> str:
        """Authenticate with API key, email and password; store and return the token."""
        if not self.credentials.is_complete:
            raise ScheduleProviderError("When I Work credentials not configured")

        payload = self._request(
            "POST",
            self.login_url,
            headers={"W-Key": self.credentials.api_key, "Content-Type": "application/json"},
            json={"email": self.credentials.email, "password": self.credentials.password},
        )
        token = payload.get("token")
        if not token:
            raise ScheduleProviderError("Login response did not include a token")

        person = payload.get("person") or payload.get("user") or (payload.get("users") or [{}])[0]
        self.token = token
        self.account_user_id = person.get("id") if isinstance(person, dict) else None
        logger.info(f"When I Work login successful, user id: {self.account_user_id}")
        return token

    def ensure_authenticated(self) -> str:
        """Reuse the current token, logging in only when there is none."""
        # TODO: re-login on HTTP 401 once the provider's token lifetime is confirmed
        if self.token:
            return self.token
        return self.login()

    def list_staff(self) -> List[Dict[str, Any]]:
        """Fetch every user on the account."""
        payload = self._request("GET", f"{self.api_url}/users", headers=self._token_headers())
        self.users = list(payload.get("users") or [])
        logger.info(f"Fetched {len(self.users)} When I Work users")
        return self.users

    def list_shifts(self, start, end) -> List[Dict[str, Any]]:
        """Fetch all shifts between two dates (inclusive, YYYY-MM-DD)."""
        params = {
            "start": pd.Timestamp(start).strftime("%Y-%m-%d"),
            "end": pd.Timestamp(end).strftime("%Y-%m-%d"),
        }
        payload = self._request("GET", f"{self.api_url}/shifts", headers=self._token_headers(), params=params)
        shifts = list(payload.get("shifts") or [])
        logger.info(f"Fetched {len(shifts)} shifts for {params['start']} to {params['end']}")
        return shifts

    # ------------------------------------------------------------------
    # Loaded state
    # ------------------------------------------------------------------

    def load_schedule(self, start, end) -> pd.DataFrame:
        """
        Authenticate, fetch staff and shifts for the range, and keep only shifts
        that belong to a known user. Returns the canonical shift frame.
        """
        self.ensure_authenticated()
        users = self.list_staff()
        raw_shifts = self.list_shifts(start, end)

        shifts = ensure_shift_columns(pd.DataFrame(raw_shifts))
        known = {str(u.get("id")) for u in users if u.get("id") is not None}
        unmatched = ~shifts["user_id"].isin(known)
        if unmatched.any():
            logger.debug(f"Dropping {int(unmatched.sum())} shift(s) with no matching user")
        self.shifts = shifts[~unmatched].reset_index(drop=True)
        self.loaded_range = (pd.Timestamp(start), pd.Timestamp(end))

        logger.info(f"Associated {len(self.shifts)} shifts with {len(users)} users")
        return self.shifts

    def covers(self, start, end) -> bool:
        """True when shifts for [start, end] are already loaded."""
        if self.loaded_range is None:
            return False
        loaded_start, loaded_end = self.loaded_range
        return loaded_start <= pd.Timestamp(start) and pd.Timestamp(end) <= loaded_end

    def get_user(self, user_id) -> Optional[Dict[str, Any]]:
        for user in self.users:
            if str(user.get("id")) == str(user_id):
                return user
        return None

    def find_users(self, search: str) -> List[Dict[str, Any]]:
        """Users whose full name or email contains `search` (case-insensitive)."""
        if not search or not self.users:
            return []

        needle = search.lower()
        matches = []
        for user in self.users:
            full_name = f"{user.get('first_name') or ''} {user.get('last_name') or ''}".lower()
            email = (user.get("email") or "").lower()
            if needle in full_name or needle in email:
                matches.append(user)
        return matches
