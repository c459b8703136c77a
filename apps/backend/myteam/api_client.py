import json
import logging
from typing import Any, Dict, List, Optional

import requests

from .config import SETTINGS
from .errors import ApiError

log = logging.getLogger(__name__)


class TeamApiClient:
    """Thin client for the fantasy team REST API.

    Serves as both the roster source (team reads) and the tactical
    persistence collaborator (player list and tactics writes).
    """

    def __init__(self, base_url: str, token: str = "", timeout: int = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._session = requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        log.debug("%s %s", method, url)
        try:
            resp = self._session.request(
                method,
                url,
                headers=self._headers(),
                data=json.dumps(body) if body is not None else None,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ApiError(f"{method} {path} failed: {exc}") from exc
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not resp.ok:
            message = ""
            if isinstance(data, dict):
                message = data.get("message") or data.get("error") or ""
            raise ApiError(message or resp.reason or f"HTTP {resp.status_code}", resp.status_code)
        return data

    def my_teams(self) -> List[Dict[str, Any]]:
        data = self._request("GET", "/fantasy/teams/my")
        if not isinstance(data, list):
            return []
        return [t for t in data if isinstance(t, dict)]

    def get_team(self, team_id: str) -> Dict[str, Any]:
        data = self._request("GET", f"/fantasy/teams/{team_id}")
        if not isinstance(data, dict):
            raise ApiError(f"unexpected team payload for {team_id}")
        return data

    def update_players(self, team_id: str, payload: Dict[str, Any]) -> Any:
        return self._request("PUT", f"/fantasy/teams/{team_id}", payload)

    def save_tactics(self, team_id: str, payload: Dict[str, Any]) -> Any:
        return self._request("PUT", f"/fantasy/teams/{team_id}/tactics", payload)


def default_client(token: str = "") -> TeamApiClient:
    return TeamApiClient(SETTINGS.api_base, token or SETTINGS.api_token, SETTINGS.request_timeout)
