"""Per-session access to the questionnaire service for the Streamlit pages."""

from __future__ import annotations

from typing import Any, Mapping

import streamlit as st

from qbuilder.authoring import QuestionnaireService
from qbuilder.config import build_backend, storage_settings
from qbuilder.notifications import StreamlitNotifier
from qbuilder.store import QuestionnaireStore

SERVICE_STATE_KEY = "questionnaire_service"


def _secrets_dict() -> Mapping[str, Any]:
    """Return Streamlit secrets, or an empty mapping when none are configured."""

    try:
        return dict(st.secrets)
    except FileNotFoundError:
        return {}


def get_service() -> QuestionnaireService:
    """Return the session's questionnaire service, creating and loading it once.

    Messages from author actions are deferred so they are still shown after
    the page reruns; call :func:`show_notifications` near the top of a page.
    """

    service = st.session_state.get(SERVICE_STATE_KEY)
    if isinstance(service, QuestionnaireService):
        return service

    backend = build_backend(storage_settings(_secrets_dict()))
    service = QuestionnaireService(QuestionnaireStore(backend), StreamlitNotifier(deferred=True))
    service.load()
    st.session_state[SERVICE_STATE_KEY] = service
    return service


def show_notifications(service: QuestionnaireService) -> None:
    """Show messages queued by actions on the previous run."""

    if isinstance(service.notifier, StreamlitNotifier):
        service.notifier.flush()


__all__ = ["SERVICE_STATE_KEY", "get_service", "show_notifications"]
