"""Shared look and feel for the questionnaire builder's Streamlit pages."""

from __future__ import annotations

from html import escape as html_escape
from typing import Any, Optional

import streamlit as st


_THEME_CSS = """
<style>
:root {
    --qb-accent: #2563EB;
    --qb-accent-soft: #E0EAFF;
    --qb-surface: #FFFFFF;
    --qb-border: rgba(37, 99, 235, 0.18);
    --qb-text: #111827;
    --qb-muted: #4B5563;
    --qb-warning-bg: #FEF3C7;
    --qb-warning-text: #92400E;
}

html, body {
    font-family: "Inter", "Segoe UI", system-ui, sans-serif;
    color: var(--qb-text);
}

.block-container {
    padding-top: 2rem;
    padding-bottom: 3rem;
}

.qb-header {
    display: flex;
    align-items: center;
    gap: 1.25rem;
    padding: 1.5rem 1.75rem;
    background: var(--qb-surface);
    border: 1px solid var(--qb-border);
    border-radius: 1.25rem;
    margin-bottom: 1.75rem;
}

.qb-header__icon {
    font-size: 2.4rem;
    line-height: 1;
}

.qb-header__title {
    margin: 0;
    font-size: 2rem;
    font-weight: 700;
}

.qb-header__subtitle {
    margin: 0.25rem 0 0 0;
    color: var(--qb-muted);
}

.qb-section-title {
    margin: 1.5rem 0 0.5rem 0;
    padding-bottom: 0.35rem;
    border-bottom: 2px solid var(--qb-accent-soft);
}

.qb-banner {
    padding: 0.9rem 1.1rem;
    border-radius: 0.75rem;
    background: var(--qb-warning-bg);
    color: var(--qb-warning-text);
    margin-bottom: 1rem;
}

.qb-short-id {
    display: inline-block;
    font-family: ui-monospace, monospace;
    font-size: 0.8rem;
    padding: 0.05rem 0.4rem;
    margin-right: 0.4rem;
    border-radius: 0.4rem;
    background: var(--qb-accent-soft);
    color: var(--qb-accent);
}
</style>
"""


def apply_app_theme(page_title: str, page_icon: Optional[str] = None) -> None:
    """Set up page configuration and inject the shared CSS theme."""

    st.set_page_config(
        page_title=page_title,
        page_icon=page_icon,
        layout="wide",
        initial_sidebar_state="expanded",
    )
    st.markdown(_THEME_CSS, unsafe_allow_html=True)


def page_header(
    title: str,
    subtitle: Optional[str] = None,
    icon: Optional[str] = None,
    *,
    container: Optional[Any] = None,
) -> None:
    """Render the page title block."""

    icon_markup = f"<span class='qb-header__icon'>{icon}</span>" if icon else ""
    subtitle_markup = (
        f"<p class='qb-header__subtitle'>{html_escape(subtitle)}</p>" if subtitle else ""
    )
    target = container.markdown if container is not None else st.markdown
    target(
        f"""
        <div class="qb-header">
            {icon_markup}
            <div>
                <h1 class="qb-header__title">{html_escape(title)}</h1>
                {subtitle_markup}
            </div>
        </div>
        """,
        unsafe_allow_html=True,
    )


def section_title(title: str) -> None:
    st.markdown(f"<h2 class='qb-section-title'>{html_escape(title)}</h2>", unsafe_allow_html=True)


def hidden_section_banner(message: str) -> None:
    """Render the banner shown in place of a hidden section."""

    st.markdown(f"<div class='qb-banner'>{html_escape(message)}</div>", unsafe_allow_html=True)
