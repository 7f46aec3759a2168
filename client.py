"""
HTTP client for the ReliefLink API.

``ApiClient`` wraps an ``httpx.Client`` and always hands back the decoded
response envelope, turning transport and HTTP errors into
``{"success": False, "error": ...}``. The per-resource clients below build
on it.
"""
import logging
import os
from typing import Any, Dict, Optional, Union

import httpx

logger = logging.getLogger(__name__)

API_URL = os.getenv("RELIEFLINK_API_URL", "http://localhost:8000")


class ApiClient:
    def __init__(self, base_url_or_client: Union[str, httpx.Client] = API_URL, timeout: float = 10.0) -> None:
        if isinstance(base_url_or_client, httpx.Client):
            self.http = base_url_or_client
        else:
            self.http = httpx.Client(base_url=base_url_or_client, timeout=timeout)
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None

    def _headers(self, skip_auth: bool) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token and not skip_auth:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Any = None,
        skip_auth: bool = False,
    ) -> Dict[str, Any]:
        try:
            response = self.http.request(
                method,
                endpoint,
                params=params,
                json=data,
                headers=self._headers(skip_auth),
            )
        except httpx.TransportError as exc:
            logger.error("Unable to reach the API at %s: %s", self.http.base_url, exc)
            return {
                "success": False,
                "error": f"Unable to connect to the API server at {self.http.base_url}",
            }

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            error = None
            if isinstance(body, dict):
                error = body.get("error")
            result = {"success": False, "error": error or f"HTTP error! status: {response.status_code}"}
            if isinstance(body, dict) and body.get("details") is not None:
                result["details"] = body["details"]
            return result

        if not isinstance(body, dict):
            return {"success": False, "error": "Unexpected response from the API"}
        return body

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Dict[str, Any]:
        return self.request("GET", endpoint, params=params, **kwargs)

    def post(self, endpoint: str, data: Any = None, **kwargs) -> Dict[str, Any]:
        return self.request("POST", endpoint, data=data, **kwargs)

    def put(self, endpoint: str, data: Any = None, **kwargs) -> Dict[str, Any]:
        return self.request("PUT", endpoint, data=data, **kwargs)

    def patch(self, endpoint: str, data: Any = None, **kwargs) -> Dict[str, Any]:
        return self.request("PATCH", endpoint, data=data, **kwargs)

    def delete(self, endpoint: str, **kwargs) -> Dict[str, Any]:
        return self.request("DELETE", endpoint, **kwargs)


class UserClient:
    base_path = "/api/users"

    def __init__(self, api: ApiClient) -> None:
        self.api = api

    def register(self, username: str, password: Optional[str] = None, contact_number: Optional[str] = None) -> Dict[str, Any]:
        """Register or log in; on success the tokens are kept on the ApiClient."""
        payload: Dict[str, Any] = {"username": username}
        if password is not None:
            payload["password"] = password
        if contact_number is not None:
            payload["contactNumber"] = contact_number
        result = self.api.post(f"{self.base_path}/register", payload, skip_auth=True)
        if result.get("success"):
            self.api.access_token = result["data"]["accessToken"]
            self.api.refresh_token = result["data"]["refreshToken"]
        return result

    def refresh(self) -> Dict[str, Any]:
        if not self.api.refresh_token:
            return {"success": False, "error": "No refresh token"}
        result = self.api.post(
            f"{self.base_path}/refresh", {"refreshToken": self.api.refresh_token}, skip_auth=True
        )
        if result.get("success"):
            self.api.access_token = result["data"]["accessToken"]
        return result

    def logout(self) -> Dict[str, Any]:
        if not self.api.refresh_token:
            return {"success": False, "error": "No refresh token"}
        result = self.api.post(
            f"{self.base_path}/logout", {"refreshToken": self.api.refresh_token}, skip_auth=True
        )
        self.api.access_token = None
        self.api.refresh_token = None
        return result

    def me(self) -> Dict[str, Any]:
        return self.api.get(f"{self.base_path}/me")


class HelpRequestClient:
    base_path = "/api/help-requests"

    def __init__(self, api: ApiClient) -> None:
        self.api = api

    def get_all(self, urgency: Optional[str] = None, district: Optional[str] = None) -> Dict[str, Any]:
        params = {}
        if urgency:
            params["urgency"] = urgency
        if district:
            params["district"] = district
        return self.api.get(self.base_path, params or None)

    def get(self, help_request_id: int) -> Dict[str, Any]:
        return self.api.get(f"{self.base_path}/{help_request_id}")

    def create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.api.post(self.base_path, payload)

    def summary(self) -> Dict[str, Any]:
        return self.api.get(f"{self.base_path}/summary")


class DonationClient:
    def __init__(self, api: ApiClient) -> None:
        self.api = api

    @staticmethod
    def _path(help_request_id: int) -> str:
        return f"/api/help-requests/{help_request_id}/donations"

    def get_by_help_request(self, help_request_id: int) -> Dict[str, Any]:
        return self.api.get(self._path(help_request_id))

    def create(self, help_request_id: int, ration_items: Dict[str, int]) -> Dict[str, Any]:
        return self.api.post(self._path(help_request_id), {"rationItems": ration_items})

    def schedule(self, help_request_id: int, donation_id: int) -> Dict[str, Any]:
        return self.api.patch(f"{self._path(help_request_id)}/{donation_id}/schedule")

    def complete_as_donator(
        self, help_request_id: int, donation_id: int, already_scheduled: bool = False
    ) -> Dict[str, Any]:
        """Marks the donation scheduled first when it is not yet, then completed."""
        if not already_scheduled:
            scheduled = self.schedule(help_request_id, donation_id)
            if not scheduled.get("success"):
                return scheduled
        return self.api.patch(f"{self._path(help_request_id)}/{donation_id}/complete-donator")

    def complete_as_owner(self, help_request_id: int, donation_id: int) -> Dict[str, Any]:
        return self.api.patch(f"{self._path(help_request_id)}/{donation_id}/complete-owner")


class ItemClient:
    base_path = "/api/items"

    def __init__(self, api: ApiClient) -> None:
        self.api = api

    def get_all(self) -> Dict[str, Any]:
        return self.api.get(self.base_path)

    def get(self, item_id: int) -> Dict[str, Any]:
        return self.api.get(f"{self.base_path}/{item_id}")

    def create(self, name: str, description: Optional[str] = None) -> Dict[str, Any]:
        return self.api.post(self.base_path, {"name": name, "description": description})

    def update(self, item_id: int, **changes: Any) -> Dict[str, Any]:
        return self.api.put(f"{self.base_path}/{item_id}", changes)

    def delete(self, item_id: int) -> Dict[str, Any]:
        return self.api.delete(f"{self.base_path}/{item_id}")
