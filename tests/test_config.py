"""Tests for reading storage settings from Streamlit secrets."""

from __future__ import annotations

from pathlib import Path

from qbuilder.config import (
    DEFAULT_REMOTE_PATH,
    GitHubSettings,
    build_backend,
    github_settings,
    storage_settings,
)
from qbuilder.github_backend import GitHubBackend
from qbuilder.store import DEFAULT_DATA_PATH, LocalJsonBackend


def test_defaults_use_the_local_json_file():
    settings = storage_settings({})

    assert settings.data_path == DEFAULT_DATA_PATH
    assert settings.github is None
    backend = build_backend(settings)
    assert isinstance(backend, LocalJsonBackend)
    assert backend.path == DEFAULT_DATA_PATH


def test_storage_table_overrides_the_data_path():
    settings = storage_settings({"storage": {"data_path": "elsewhere/q.json"}})

    assert settings.data_path == Path("elsewhere/q.json")


def test_github_table_is_read():
    secrets = {"github": {"token": "t0k", "repo": "acme/forms", "branch": "data"}}

    settings = github_settings(secrets)

    assert settings == GitHubSettings(token="t0k", repo="acme/forms", path=DEFAULT_REMOTE_PATH, branch="data")
    backend = build_backend(storage_settings(secrets))
    assert isinstance(backend, GitHubBackend)
    assert backend.repo == "acme/forms"
    assert backend.branch == "data"


def test_flat_github_keys_are_accepted():
    secrets = {"github_token": "t0k", "github_repo": "acme/forms", "github_file_path": "q.json"}

    settings = github_settings(secrets)

    assert settings is not None
    assert settings.path == "q.json"
    assert settings.branch == "main"


def test_incomplete_github_settings_fall_back_to_local():
    assert github_settings({"github": {"repo": "acme/forms"}}) is None
    assert storage_settings({"github": "not-a-table"}).github is None
    assert storage_settings(None).github is None
