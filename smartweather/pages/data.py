import json

import pandas as pd
import streamlit as st

from smartweather.ui.components.cards import status_card


def render(ctx):
    st.markdown("<div class='section-title'>Data</div>", unsafe_allow_html=True)
    section = st.radio(
        "Data sections",
        ["Reading", "Devices", "Raw Status"],
        horizontal=True,
        label_visibility="collapsed",
    )

    if section == "Reading":
        reading = (ctx.get("view") or {}).get("reading") or {}
        if not reading:
            st.info("No reading yet.")
            return
        rows = [{"Metric": metric, "Value": value} for metric, value in reading.items()]
        st.dataframe(pd.DataFrame(rows), use_container_width=True)
        return

    if section == "Devices":
        devices = ctx.get("devices") or []
        if not devices:
            st.info("No weather devices discovered.")
            return
        rows = [
            {
                "Device": device.display_name,
                "ID": device.id,
                "Capabilities": ", ".join(sorted(device.capabilities)),
            }
            for device in devices
        ]
        st.dataframe(pd.DataFrame(rows), use_container_width=True)
        return

    raw = ctx.get("raw_status")
    if raw:
        st.code(json.dumps(raw, indent=2, sort_keys=True), language="json")
    status_card(
        "Status",
        [
            ("Auth", ctx.get("auth_mode", "--")),
            ("Token expires", ctx.get("token_expires", "--")),
            ("Last refresh", (ctx.get("view") or {}).get("updated", "--")),
            ("Status", ctx.get("status") or "--"),
        ],
    )
