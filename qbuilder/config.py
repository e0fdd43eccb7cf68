"""Storage settings read from Streamlit secrets."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from qbuilder.github_backend import GitHubBackend
from qbuilder.store import DEFAULT_DATA_PATH, LocalJsonBackend

DEFAULT_REMOTE_PATH = "questionnaire_data/questionnaire.json"


@dataclass(frozen=True)
class GitHubSettings:
    """Location of the questionnaire document in a GitHub repository."""

    token: str
    repo: str
    path: str = DEFAULT_REMOTE_PATH
    branch: str = "main"
    api_url: str = "https://api.github.com"


@dataclass(frozen=True)
class StorageSettings:
    data_path: Path = DEFAULT_DATA_PATH
    github: Optional[GitHubSettings] = None


def _section(secrets: Mapping, name: str) -> Dict[str, Any]:
    """Return the table stored under ``name`` in ``secrets``."""

    value = secrets.get(name, {})
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def github_settings(secrets: Mapping) -> Optional[GitHubSettings]:
    """Return GitHub settings when a token and repository are configured.

    The ``[github]`` table is preferred; flat ``github_*`` keys are accepted
    for older secrets files.
    """

    table = _section(secrets, "github")
    token = table.get("token") or secrets.get("github_token")
    repo = table.get("repo") or secrets.get("github_repo")
    if not (token and repo):
        return None
    return GitHubSettings(
        token=str(token),
        repo=str(repo),
        path=str(table.get("path") or secrets.get("github_file_path") or DEFAULT_REMOTE_PATH),
        branch=str(table.get("branch") or secrets.get("github_branch") or "main"),
        api_url=str(table.get("api_url") or secrets.get("github_api_url") or "https://api.github.com"),
    )


def storage_settings(secrets: Optional[Mapping] = None) -> StorageSettings:
    """Build :class:`StorageSettings` from a secrets mapping."""

    secrets = secrets if isinstance(secrets, Mapping) else {}
    storage = _section(secrets, "storage")
    data_path = storage.get("data_path")
    return StorageSettings(
        data_path=Path(data_path) if data_path else DEFAULT_DATA_PATH,
        github=github_settings(secrets),
    )


def build_backend(settings: StorageSettings) -> Union[GitHubBackend, LocalJsonBackend]:
    """Use GitHub when it is configured, the local JSON file otherwise."""

    if settings.github is not None:
        return GitHubBackend(
            token=settings.github.token,
            repo=settings.github.repo,
            path=settings.github.path,
            branch=settings.github.branch,
            api_url=settings.github.api_url,
        )
    return LocalJsonBackend(settings.data_path)


__all__ = [
    "GitHubSettings",
    "StorageSettings",
    "build_backend",
    "github_settings",
    "storage_settings",
]
