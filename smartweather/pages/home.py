import altair as alt
import pandas as pd
import streamlit as st

from smartweather.ui.components.cards import advice_card, alert_message, chart_card, metric_card
from smartweather.ui.tokens import CHART, COLORS


def forecast_hourly_chart(hourly_df: pd.DataFrame | None):
    if hourly_df is None or hourly_df.empty or "air_temperature" not in hourly_df:
        return None
    hours = hourly_df.copy()

    temp = (
        alt.Chart(hours)
        .mark_line(interpolate="monotone", strokeWidth=2.2, color=COLORS["accent"])
        .encode(
            x=alt.X("time:T", title="Time"),
            y=alt.Y("air_temperature:Q", title="Temp (°C)"),
            tooltip=[alt.Tooltip("time:T", format="%H:%M"), "air_temperature:Q"],
        )
    )

    chart = temp
    if "precipitation" in hours:
        precip = (
            alt.Chart(hours)
            .mark_bar(opacity=0.3, color=COLORS["accent2"])
            .encode(
                x=alt.X("time:T", title=""),
                y=alt.Y("precipitation:Q", title="Precip (mm)"),
            )
        )
        chart = alt.layer(precip, temp).resolve_scale(y="independent")

    return (
        chart.properties(height=200)
        .configure_axis(labelColor=CHART["label"], titleColor=CHART["label"], gridColor=CHART["grid"])
    )


def render_air_quality(view: dict):
    aqi = view["aqi"]
    st.markdown("<div class='section-title'>Air Quality</div>", unsafe_allow_html=True)
    metric_card(aqi["icon"], "Air quality", aqi["label"], color=aqi["color"])
    cols = st.columns(len(view["particulates"]))
    for col, pm in zip(cols, view["particulates"]):
        with col:
            metric_card("", pm["label"], pm["text"], color=pm["color"])
    alert_message(aqi["message"], aqi["color"])


def render_temperature(view: dict):
    temp = view["temperature"]
    st.markdown("<div class='section-title'>Temperature & Clothing</div>", unsafe_allow_html=True)
    band_text = temp["band"].title() if temp["band"] else None
    metric_card("🌡️", "Temperature", temp["text"], subvalue=band_text, color=temp["color"])
    if temp["clothing"]:
        advice_card(f"What to wear ({view['season']})", temp["clothing"], temp["color"])
    else:
        st.info("Temperature sensor not available.")


def render_humidity_pressure(view: dict):
    humidity = view["humidity"]
    pressure = view["pressure"]
    st.markdown("<div class='section-title'>Humidity & Pressure</div>", unsafe_allow_html=True)
    left, right = st.columns(2)
    with left:
        metric_card("💧", "Humidity", humidity["text"], color=humidity["color"])
    with right:
        subvalue = None if pressure["available"] else "sensor not available"
        metric_card("🧭", "Pressure", pressure["text"], subvalue=subvalue, color=pressure["color"])


def render_forecasts(forecasts: list[dict]):
    st.markdown("<div class='section-title'>Forecast (next 24h)</div>", unsafe_allow_html=True)
    if not forecasts:
        st.info("No forecast locations configured.")
        return
    for item in forecasts:
        chart = forecast_hourly_chart(item.get("hourly"))

        def body(chart=chart, status=item.get("status")):
            if chart is not None:
                st.altair_chart(chart, use_container_width=True)
            else:
                st.info(status or "No data")

        chart_card(item["location"]["name"], body)


def render(ctx):
    view = ctx.get("view")
    if not view:
        st.info(ctx.get("status") or "Waiting for the first reading...")
        return

    main_col, right_col = ctx["layout"]()
    with main_col:
        render_air_quality(view)
        render_humidity_pressure(view)
    with right_col:
        render_temperature(view)
    render_forecasts(ctx.get("forecasts") or [])
