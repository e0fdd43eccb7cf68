"""Streamlit entrypoint registering the questionnaire builder pages."""

from typing import List

import streamlit as st

PAGES = (
    ("Home.py", "Overview", "🏠"),
    ("pages/01_Questionnaire.py", "Questionnaire", "🗒️"),
    ("pages/02_Editor.py", "Editor", "🛠️"),
)


def build_pages() -> List["st.Page"]:
    """Return the navigation entries, with the overview as the default page."""

    return [
        st.Page(path, title=title, icon=icon, default=index == 0)
        for index, (path, title, icon) in enumerate(PAGES)
    ]


def main() -> None:
    st.navigation(build_pages()).run()


if __name__ == "__main__":
    main()
