"""Thin client for the Redmine issues REST API.

Only the three calls the notifier needs: search open issues by fingerprint,
create an issue, and update an issue with a journal note. Every failure
(connection refused, timeout, non-2xx status, undecodable body) is logged and
raised as RedmineTransportError. Nothing is retried.
"""

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

# Short connect timeout, longer read timeout: a hung tracker must not block
# the caller's request path indefinitely.
CONNECT_TIMEOUT = 5
READ_TIMEOUT = 10


class RedmineTransportError(Exception):
    """Any failure talking to Redmine."""


class RedmineClient:
    """Issues API client authenticated with a fixed API key."""

    def __init__(self, base_url: str, api_key: str, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session = session or requests.Session()

    def search_open_issue(self, project_id: str, fingerprint: str) -> Optional[dict]:
        """Find the open issue whose subject carries `[fingerprint]`.

        Returns the issue dict, or None if no open issue matches.
        """
        params = {
            "project_id": project_id,
            "subject": f"~[{fingerprint}]",
            "status_id": "open",
        }
        data = self._request("GET", "/issues.json", params=params)
        if not isinstance(data, dict):
            raise RedmineTransportError("Unexpected search response shape")

        marker = f"[{fingerprint}]"
        for issue in data.get("issues") or []:
            if marker in (issue.get("subject") or ""):
                return issue
        return None

    def create_issue(self, payload: dict) -> Optional[dict]:
        """POST a new issue. Returns the created issue as decoded from Redmine."""
        data = self._request("POST", "/issues.json", json=payload)
        if not isinstance(data, dict):
            return None
        return data.get("issue")

    def update_issue(self, issue_id, payload: dict) -> bool:
        """PUT changes (subject, notes) to an existing issue."""
        self._request("PUT", f"/issues/{issue_id}.json", json=payload)
        return True

    def _request(self, method: str, path: str, params: dict | None = None, json: dict | None = None):
        url = f"{self.base_url}{path}"
        headers = {"X-Redmine-API-Key": self.api_key}
        if json is not None:
            headers["Content-Type"] = "application/json"

        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=(CONNECT_TIMEOUT, READ_TIMEOUT),
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            logger.error(f"Redmine {method} {path} timed out: {e}")
            raise RedmineTransportError(f"Timeout: {e}") from e
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Redmine {method} {path} connection error: {e}")
            raise RedmineTransportError(f"Connection error: {e}") from e
        except requests.exceptions.HTTPError as e:
            logger.error(f"Redmine {method} {path} returned HTTP {response.status_code}: {response.text[:500]}")
            raise RedmineTransportError(f"HTTP {response.status_code}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Redmine {method} {path} failed: {e}")
            raise RedmineTransportError(str(e)) from e

        # Updates answer 204 No Content.
        if not response.content or not response.content.strip():
            return None

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Failed to parse Redmine response for {method} {path}: {e}")
            raise RedmineTransportError(f"Malformed response: {e}") from e
