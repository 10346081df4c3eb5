import os

import streamlit as st


def set_theme(
    page_title: str = "TaskFirst",
    page_icon: str = "✅",
    layout: str = "wide",
    initial_sidebar_state: str = "expanded",
):
    """Configure the Streamlit page and inject the shared TaskFirst CSS.

    Call once at the top of each page; Streamlit only honours the first
    page config of a run, but the CSS is injected every time.
    """
    try:
        st.set_page_config(
            page_title=page_title,
            page_icon=page_icon,
            layout=layout,
            initial_sidebar_state=initial_sidebar_state,
        )
    except Exception:
        # set_page_config can only be called once; ignore if already set.
        pass

    theme_file = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "assets", "custom_theme.css")

    try:
        with open(theme_file, "r", encoding="utf-8") as f:
            st.markdown(f"<style>{f.read()}</style>", unsafe_allow_html=True)
    except FileNotFoundError:
        st.error(f"Theme file not found at {theme_file}. Please check the file path.")


def stat_card_html(label: str, value, *, active: bool = False, tone: str = "") -> str:
    classes = "tf-stat-card" + (" tf-stat-active" if active else "") + (f" tf-tone-{tone}" if tone else "")
    return (
        f'<div class="{classes}"><div class="tf-stat-label">{label}</div>'
        f'<div class="tf-stat-value">{value}</div></div>'
    )
