"""
Remote session store over HTTP.

    GET    {endpoint}/sessions/{user_id}  -> 200 JSON payload | 404
    PUT    {endpoint}/sessions/{user_id}  <- JSON payload
    DELETE {endpoint}/sessions/{user_id}
"""

import logging
from typing import Optional
from urllib.parse import quote

import requests

from rad_rater.errors import LoadError, PersistenceError
from rad_rater.storage.base import Payload, SessionStore

logger = logging.getLogger(__name__)


class HttpSessionStore(SessionStore):
    """
    Session store backed by a small JSON key-value web service.

    Attributes:
        endpoint: Base URL of the service
        token: Optional bearer token
        timeout: Request timeout in seconds
    """

    name = "http store"

    def __init__(
        self,
        endpoint: str,
        token: str = "",
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        if not endpoint:
            raise ValueError("An endpoint URL is required for the http session store")
        self.endpoint = endpoint.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.http = session or requests.Session()

    def url_for(self, user_id: str) -> str:
        return f"{self.endpoint}/sessions/{quote(user_id, safe='')}"

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, user_id: str, **kwargs) -> requests.Response:
        try:
            return self.http.request(
                method,
                self.url_for(user_id),
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise PersistenceError(f"{method} {self.url_for(user_id)} failed: {e}") from e

    def _get(self, user_id: str) -> Optional[Payload]:
        response = self._request("GET", user_id)
        if response.status_code == 404:
            return None
        if not response.ok:
            raise PersistenceError(f"GET returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise LoadError(
                f"Remote session for {user_id} is not valid JSON",
                ["Check the remote store contents", "Reset the session to start over"],
            ) from e

    def _put(self, user_id: str, payload: Payload) -> None:
        response = self._request("PUT", user_id, json=payload)
        if not response.ok:
            raise PersistenceError(f"PUT returned HTTP {response.status_code}")
        logger.debug("Stored session for %s at %s", user_id, self.endpoint)

    def _delete(self, user_id: str) -> None:
        response = self._request("DELETE", user_id)
        if not response.ok and response.status_code != 404:
            raise PersistenceError(f"DELETE returned HTTP {response.status_code}")
