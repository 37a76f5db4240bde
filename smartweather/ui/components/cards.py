from html import escape

import streamlit as st


def _html(markup: str):
    st.markdown(markup, unsafe_allow_html=True)


def _card(inner: str, classes: str = "", accent: str | None = None) -> str:
    style = f' style="--metric-color: {accent};"' if accent else ""
    return f'<div class="card {classes}"{style}>{inner}</div>'


def metric_card(icon: str, label: str, value: str, subvalue: str | None = None, color: str | None = None):
    """One reading: icon, label, big value, optional caption. `color` tints the value."""
    caption = f'<div class="metric-sub">{escape(subvalue)}</div>' if subvalue else ""
    body = (
        f'<div class="metric-icon">{icon}</div>'
        '<div class="metric-body">'
        f'<div class="metric-label">{escape(label)}</div>'
        f'<div class="metric-value">{escape(value)}</div>'
        f"{caption}"
        "</div>"
    )
    _html(_card(body, "metric-card", color))


def chart_card(title: str | None, body_renderer):
    if title and title.strip():
        _html(f'<div class="section-title">{escape(title)}</div>')
    _html('<div class="card chart-card"><div class="body">')
    body_renderer()
    _html("</div></div>")


def status_card(title: str, items: list[tuple[str, str]]):
    rows = "".join(
        f'<div class="status-line"><span>{escape(str(k))}</span><span>{escape(str(v))}</span></div>'
        for k, v in items
    )
    _html(_card(f'<div class="section-title">{escape(title)}</div>{rows}', "status-card"))


def advice_card(title: str, items: list[str], color: str):
    bullets = "".join(f"<li>{escape(item)}</li>" for item in items)
    body = f'<div class="section-title">{escape(title)}</div><ul class="clothing-list">{bullets}</ul>'
    _html(_card(body, "advice-card", color))


def alert_message(text: str, color: str):
    _html(f'<div class="alert-message" style="color: {color}; background: {color}22;">{escape(text)}</div>')
