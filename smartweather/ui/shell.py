import html

import streamlit as st

PAGES = {
    "home": "Dashboard",
    "data": "Raw data",
}


def render_left_rail(page: str, render_controls):
    """Sidebar: page switcher on top, then whatever controls the app adds."""
    keys = list(PAGES)
    with st.sidebar:
        st.session_state.page = st.radio(
            "Page",
            keys,
            index=keys.index(page) if page in keys else 0,
            format_func=PAGES.get,
            label_visibility="collapsed",
        )
        render_controls()


def render_header_strip(title: str, updated: str):
    st.markdown(
        "<div class='header-strip'>"
        f"<h2>{html.escape(title)}</h2>"
        f"<span class='metric-sub'>Last updated: {html.escape(updated)}</span>"
        "</div>",
        unsafe_allow_html=True,
    )


def render_main_layout():
    # readings on the left, clothing advice on the right
    return st.columns([3, 2], gap="large")
