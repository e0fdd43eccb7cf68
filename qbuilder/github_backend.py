"""Questionnaire document storage through GitHub's Contents API."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests


@dataclass
class GitHubBackend:
    """Read and write the questionnaire JSON document stored in a repository.

    The blob sha seen by the last read or write is kept, so a commit sends it
    without another GET. If the document changed on GitHub in the meantime the
    PUT is rejected and the next read picks up the new sha.
    """

    token: str
    repo: str
    path: str
    branch: str = "main"
    api_url: str = "https://api.github.com"
    timeout: float = 10
    _sha: Optional[str] = field(default=None, init=False, repr=False)
    _sha_known: bool = field(default=False, init=False, repr=False)

    def _headers(self) -> Dict[str, str]:
        """Build request headers for the GitHub API."""

        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "Content-Type": "application/json",
        }

    def _url(self) -> str:
        """Construct the contents URL for the configured document."""

        return f"{self.api_url.rstrip('/')}/repos/{self.repo}/contents/{self.path}"

    def _fetch(self) -> Optional[Dict[str, Any]]:
        """Return the contents payload, or ``None`` if the file does not exist."""

        response = requests.get(
            self._url(),
            headers=self._headers(),
            params={"ref": self.branch},
            timeout=self.timeout,
        )
        if response.status_code == 404:
            self._remember_sha(None)
            return None
        response.raise_for_status()
        payload = response.json()
        self._remember_sha(payload.get("sha"))
        return payload

    def _remember_sha(self, sha: Optional[str]) -> None:
        self._sha = sha
        self._sha_known = True

    def get_file_sha(self) -> Optional[str]:
        """Return the blob SHA of the document if it exists."""

        payload = self._fetch()
        return payload.get("sha") if payload else None

    def read_json(self) -> Optional[Dict[str, Any]]:
        """Return the stored document, or ``None`` when nothing was saved yet."""

        payload = self._fetch()
        if payload is None:
            return None
        encoding = payload.get("encoding", "base64")
        if encoding != "base64":
            raise ValueError(f"Unsupported encoding: {encoding}")

        decoded = base64.b64decode(payload.get("content", "")).decode("utf-8")
        return json.loads(decoded)

    def write_json(self, data: Dict[str, Any], message: str) -> Dict[str, Any]:
        """Commit ``data`` as the new document contents."""

        payload: Dict[str, Any] = {
            "message": message,
            "branch": self.branch,
            "content": base64.b64encode(json.dumps(data, indent=2).encode("utf-8")).decode("utf-8"),
        }

        sha = self._sha if self._sha_known else self.get_file_sha()
        if sha:
            payload["sha"] = sha

        response = requests.put(
            self._url(),
            headers=self._headers(),
            json=payload,
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            self._sha_known = False
        response.raise_for_status()
        result = response.json()
        new_sha = (result.get("content") or {}).get("sha")
        if new_sha:
            self._remember_sha(new_sha)
        else:
            self._sha_known = False
        return result


__all__ = ["GitHubBackend"]
