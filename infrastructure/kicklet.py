from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from domain.errors import PointsMirrorError
from domain.repositories import PointsMirror

logger = logging.getLogger(__name__)

KICKLET_API_BASE = "https://kicklet.app/api"


class KickletPointsMirror(PointsMirror):
    """
    `PointsMirror` backed by the Kicklet channel-points API.

    Reads are retried on connection errors and 5xx answers. Point changes
    are only retried when the connection could not be made, since a PATCH
    that reached Kicklet may already have been applied.
    """

    def __init__(
        self,
        api_token: str,
        channel_id: str,
        timeout: float = 5.0,
        retries: int = 2,
        base_url: str = KICKLET_API_BASE,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._channel_id = channel_id
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()

        retry = Retry(
            total=retries,
            connect=retries,
            read=retries,
            status=retries,
            backoff_factor=0.3,
            status_forcelist=(502, 503, 504),
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)
        self._session.headers.update(
            {
                "Authorization": f"apitoken {api_token.strip()}",
                "Content-Type": "application/json",
            }
        )

    def _request(self, method: str, endpoint: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        url = f"{self._base_url}{endpoint}"
        try:
            response = self._session.request(method, url, params=params, timeout=self._timeout)
        except requests.RequestException as exc:
            raise PointsMirrorError(f"Kicklet request failed: {exc}") from exc

        if not response.ok:
            logger.error("Kicklet API error (%s) for %s %s: %s", response.status_code, method, url, response.text[:200])
            raise PointsMirrorError(f"Kicklet API request failed: {response.status_code}")
        return response

    def _change(self, account: str, action: str, points: int) -> None:
        endpoint = f"/stats/{self._channel_id}/points/{quote(account, safe='')}/{action}/{points}"
        self._request("PATCH", endpoint)
        logger.debug("Kicklet %s %s points for %s", action, points, account)

    def get_points(self, account: str) -> int:
        response = self._request(
            "GET",
            f"/stats/{self._channel_id}/viewer/ranking",
            params={
                "page": 1,
                "pageSize": 50,
                "orderBy": "watchtime",
                "order": "desc",
                "search": account,
            },
        )
        try:
            ranking = response.json().get("ranking") or []
        except ValueError as exc:
            raise PointsMirrorError("Kicklet returned an unreadable ranking") from exc

        wanted = account.lower()
        for viewer in ranking:
            if str(viewer.get("viewerKickUsername", "")).lower() == wanted:
                return int(viewer.get("points") or 0)
        raise PointsMirrorError(f"Viewer {account!r} not found on Kicklet")

    def add_points(self, account: str, points: int) -> None:
        if points <= 0:
            raise PointsMirrorError("Points must be greater than 0")
        self._change(account, "add", points)

    def remove_points(self, account: str, points: int) -> None:
        if points <= 0:
            raise PointsMirrorError("Points must be greater than 0")
        self._change(account, "remove", points)

    def set_points(self, account: str, points: int) -> None:
        if points < 0:
            raise PointsMirrorError("Points cannot be negative")
        self._change(account, "set", points)
