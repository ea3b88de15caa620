from datetime import date
from typing import Any, Optional, Union

import httpx


class ApiError(Exception):
    """Non-2xx answer from the booking API."""

    def __init__(self, status_code: int, code: str, message: str):
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"{status_code} {code}: {message}")


class AppointmentClient:
    """Thin synchronous client for the booking API.

    Pass an existing ``httpx.Client`` (a FastAPI ``TestClient`` works too)
    or let the client open one against ``base_url``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        client: Optional[httpx.Client] = None,
        api_prefix: str = "/api",
        timeout: float = 10.0,
    ):
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self.api_prefix = api_prefix

    def close(self):
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _request(self, method: str, endpoint: str, token: Optional[str] = None, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if token:
            headers["Authorization"] = f"Bearer {token}"

        response = self._client.request(method, f"{self.api_prefix}{endpoint}", headers=headers, **kwargs)
        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            error = (data or {}).get("error", {}) if isinstance(data, dict) else {}
            raise ApiError(
                response.status_code,
                error.get("code", "HTTP_ERROR"),
                error.get("message", "Something went wrong"),
            )
        return data

    def register(self, name: str, email: str, password: str) -> dict:
        return self._request("POST", "/register", json={"name": name, "email": email, "password": password})

    def login(self, email: str, password: str) -> dict:
        return self._request("POST", "/login", json={"email": email, "password": password})

    def get_slots(self, from_date: Union[date, str], to_date: Union[date, str]) -> list:
        return self._request("GET", "/slots", params={"from": str(from_date), "to": str(to_date)})

    def book_slot(self, slot_id: int, token: str) -> dict:
        return self._request("POST", "/book", token=token, json={"slotId": slot_id})

    def get_my_bookings(self, token: str) -> list:
        return self._request("GET", "/my-bookings", token=token)

    def get_all_bookings(self, token: str) -> list:
        return self._request("GET", "/all-bookings", token=token)
