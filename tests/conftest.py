"""Shared fixtures for the questionnaire builder tests."""

from __future__ import annotations

from pathlib import Path
import sys
from typing import Any, Dict, List, Optional, Tuple

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from qbuilder.authoring import QuestionnaireService  # noqa: E402
from qbuilder.store import LocalJsonBackend, QuestionnaireStore  # noqa: E402


class RecordingNotifier:
    """Collect notifications instead of rendering them."""

    def __init__(self) -> None:
        self.messages: List[Tuple[str, str]] = []

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    @property
    def errors(self) -> List[str]:
        return [message for level, message in self.messages if level == "error"]

    @property
    def successes(self) -> List[str]:
        return [message for level, message in self.messages if level == "success"]


class FlakyBackend:
    """In-memory backend whose writes can be switched to fail."""

    def __init__(self, document: Optional[Dict[str, Any]] = None) -> None:
        self.document = document
        self.fail_writes = False
        self.fail_reads = False
        self.writes: List[str] = []

    def read_json(self) -> Optional[Dict[str, Any]]:
        if self.fail_reads:
            raise OSError("read failed")
        return self.document

    def write_json(self, data: Dict[str, Any], message: str) -> Dict[str, Any]:
        if self.fail_writes:
            raise OSError("disk full")
        self.document = data
        self.writes.append(message)
        return {"message": message}


@pytest.fixture
def data_path(tmp_path: Path) -> Path:
    return tmp_path / "questionnaire.json"


@pytest.fixture
def store(data_path: Path) -> QuestionnaireStore:
    questionnaire_store = QuestionnaireStore(LocalJsonBackend(data_path))
    questionnaire_store.refresh()
    return questionnaire_store


@pytest.fixture
def flaky_backend() -> FlakyBackend:
    return FlakyBackend()


@pytest.fixture
def flaky_store(flaky_backend: FlakyBackend) -> QuestionnaireStore:
    questionnaire_store = QuestionnaireStore(flaky_backend)
    questionnaire_store.refresh()
    return questionnaire_store


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(store: QuestionnaireStore, notifier: RecordingNotifier) -> QuestionnaireService:
    return QuestionnaireService(store, notifier)
