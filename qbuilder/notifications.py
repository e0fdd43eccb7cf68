"""Success and failure notification sinks for author actions."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Tuple

import streamlit as st

PENDING_STATE_KEY = "qb_pending_notifications"


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class StreamlitNotifier:
    """Show notifications with Streamlit status elements.

    With ``deferred=True`` messages are queued in the session state and shown
    by :meth:`flush` on the next run, so they survive a ``st.rerun()``.
    """

    def __init__(self, deferred: bool = False) -> None:
        self.deferred = deferred

    def success(self, message: str) -> None:
        self._emit("success", message)

    def error(self, message: str) -> None:
        self._emit("error", message)

    def _emit(self, level: str, message: str) -> None:
        if self.deferred:
            pending: List[Tuple[str, str]] = st.session_state.setdefault(PENDING_STATE_KEY, [])
            pending.append((level, message))
            return
        _show(level, message)

    def flush(self) -> None:
        """Show and clear any queued messages."""

        pending = st.session_state.pop(PENDING_STATE_KEY, [])
        for level, message in pending:
            _show(level, message)


def _show(level: str, message: str) -> None:
    if level == "error":
        st.error(message)
    else:
        st.success(message)


class LoggingNotifier:
    """Send notifications to a logger, for scripts and tests."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("qbuilder.notifications")

    def success(self, message: str) -> None:
        self.logger.info(message)

    def error(self, message: str) -> None:
        self.logger.error(message)


__all__ = ["LoggingNotifier", "Notifier", "PENDING_STATE_KEY", "StreamlitNotifier"]
