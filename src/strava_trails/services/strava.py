"""Strava activities API client.

A thin, blocking client over ``requests``. The engine runs it in worker
threads; pagination and credential handling belong to the caller.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from strava_trails.config import STRAVA_API_URL
from strava_trails.errors import AuthError, PageFetchError, TransientNetworkError

logger = logging.getLogger("strava_trails.strava")

TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class StravaClient:
    """Fetches raw activity summaries, one page at a time."""

    def __init__(
        self,
        api_url: str = STRAVA_API_URL,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_url: Base URL of the Strava v3 API.
            timeout: Per-request timeout in seconds.
            session: Optional session to reuse connections.
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_activities(self, token: str, page: int, per_page: int) -> list[dict[str, Any]]:
        """Fetch one page of the authenticated athlete's activities.

        Args:
            token: Bearer access token.
            page: 1-based page number.
            per_page: Page size.

        Returns:
            Raw activity records; an empty or short list signals the end.

        Raises:
            AuthError: The token was rejected (HTTP 401).
            TransientNetworkError: Connection problem, rate limit or server error.
            PageFetchError: Any other failure.
        """
        url = f"{self.api_url}/athlete/activities"
        logger.debug("GET %s page=%d per_page=%d", url, page, per_page)

        try:
            response = self.session.get(
                url,
                headers={"Authorization": f"Bearer {token}"},
                params={"page": page, "per_page": per_page},
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientNetworkError(f"Could not reach Strava: {e}") from e
        except requests.RequestException as e:
            raise PageFetchError(f"Activities request failed: {e}") from e

        self._log_rate_limit(response)

        if response.status_code == 401:
            raise AuthError("Strava access token rejected (HTTP 401)", token=token)
        if response.status_code in TRANSIENT_STATUS_CODES:
            raise TransientNetworkError(
                f"Strava returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if not response.ok:
            raise PageFetchError(
                f"Strava returned HTTP {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise PageFetchError("Strava returned a non-JSON activities page") from e

        if not isinstance(data, list):
            raise PageFetchError(
                f"Activities page had unexpected type {type(data).__name__}"
            )

        logger.debug("Page %d returned %d records", page, len(data))
        return data

    @staticmethod
    def _log_rate_limit(response: requests.Response) -> None:
        limit = response.headers.get("X-RateLimit-Limit")
        usage = response.headers.get("X-RateLimit-Usage")
        if limit and usage:
            logger.debug("Rate limit usage %s of %s", usage, limit)


def _error_detail(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return str(payload)[:200]
