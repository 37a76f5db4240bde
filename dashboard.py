import os
from contextlib import closing
from datetime import datetime

import pandas as pd
import streamlit as st
from streamlit_autorefresh import st_autorefresh

from smartweather.config_store import connect as config_connect
from smartweather.errors import ApiError, DeviceNotFoundError, NetworkError, NotAuthorizedError, SmartWeatherError
from smartweather.forecast import fetch_openmeteo_forecast, load_forecast_locations, save_forecast_locations
from smartweather.log import log
from smartweather.oauth import CredentialManager, OAuthConfig
from smartweather.pages import authorize as page_authorize
from smartweather.pages import data as page_data
from smartweather.pages import home as page_home
from smartweather.presenter import DashboardPresenter
from smartweather.smartthings import SmartThingsClient, static_token
from smartweather.token_store import TokenStore
from smartweather.ui.apply_styles import apply_styles
from smartweather.ui.shell import render_header_strip, render_left_rail, render_main_layout

DB_PATH = os.getenv("SMARTWEATHER_DB_PATH", "data/smartweather.db")
SMARTTHINGS_PAT = os.getenv("SMARTTHINGS_PAT", "").strip()
AUTO_REFRESH_SECONDS = int(os.getenv("AUTO_REFRESH_SECONDS", "60"))
FORECAST_REFRESH_MINUTES = int(os.getenv("FORECAST_REFRESH_MINUTES", "30"))

st.set_page_config(
    page_title="SmartThings Weather",
    layout="wide"
)
apply_styles()


@st.cache_resource
def build_services():
    store = TokenStore(DB_PATH)
    manager = CredentialManager(OAuthConfig.from_env(), store)
    token_provider = static_token(SMARTTHINGS_PAT) if SMARTTHINGS_PAT else manager.get_valid_access_token
    client = SmartThingsClient(token_provider)
    presenter = DashboardPresenter(client, DB_PATH)
    log(f"Dashboard services ready (auth={'pat' if SMARTTHINGS_PAT else 'oauth'}, db={DB_PATH})")
    return manager, presenter


@st.cache_data(ttl=FORECAST_REFRESH_MINUTES * 60)
def load_forecast(lat, lon):
    return fetch_openmeteo_forecast(lat, lon)


def load_locations():
    try:
        with closing(config_connect(DB_PATH)) as conn:
            return load_forecast_locations(conn)
    except Exception as exc:
        log(f"Forecast locations unavailable: {exc}")
        return []


def token_expiry_text(manager: CredentialManager) -> str:
    if SMARTTHINGS_PAT:
        return "personal access token"
    record = manager.store.load()
    if not record or not record.access_token:
        return "--"
    expires = datetime.fromtimestamp(record.expires_at_ms() / 1000)
    return expires.strftime("%Y-%m-%d %H:%M")


manager, presenter = build_services()

if "page" not in st.session_state:
    st.session_state.page = "home"

if not SMARTTHINGS_PAT and not manager.is_authorized():
    page_authorize.render(manager)
    st.stop()

if AUTO_REFRESH_SECONDS > 0:
    st_autorefresh(
        interval=AUTO_REFRESH_SECONDS * 1000,
        key="dashboard_autorefresh",
    )

status = None
view = presenter.last_view
try:
    fresh = presenter.refresh()
    if fresh is not None:
        view = fresh
        status = "Dashboard ready"
    else:
        status = "Refresh already in progress"
except NotAuthorizedError as exc:
    log(f"Not authorized: {exc}")
    st.session_state.pop("auth_request", None)
    page_authorize.render(manager)
    st.stop()
except DeviceNotFoundError as exc:
    status = str(exc)
    st.warning(status)
except (ApiError, NetworkError) as exc:
    status = f"Error: {exc}"
    log(f"Refresh failed: {exc}")
    st.error(status)
except SmartWeatherError as exc:
    status = f"Error: {exc}"
    st.error(status)


def render_controls():
    st.markdown("<div class='section-title'>Device</div>", unsafe_allow_html=True)
    if presenter.devices:
        ids = [device.id for device in presenter.devices]
        names = {device.id: device.display_name for device in presenter.devices}
        current = presenter.selected.id if presenter.selected else ids[0]
        choice = st.selectbox(
            "Weather device",
            ids,
            index=ids.index(current) if current in ids else 0,
            format_func=lambda device_id: names.get(device_id, device_id),
            label_visibility="collapsed",
        )
        if choice != current:
            presenter.select_device(choice)
            st.rerun()
    if st.button("Refresh now"):
        st.rerun()
    if st.button("Rediscover devices"):
        try:
            presenter.discover()
        except SmartWeatherError as exc:
            st.error(str(exc))
        st.rerun()

    st.markdown("<div class='section-title'>Forecast locations</div>", unsafe_allow_html=True)
    locations = load_locations()
    edited = st.data_editor(
        pd.DataFrame(locations, columns=["name", "latitude", "longitude"]),
        num_rows="dynamic",
        hide_index=True,
        key="forecast_locations_editor",
    )
    if st.button("Save locations"):
        with closing(config_connect(DB_PATH)) as conn:
            save_forecast_locations(conn, edited.dropna().to_dict("records"))
        st.rerun()

    if not SMARTTHINGS_PAT:
        st.markdown("<div class='section-title'>Account</div>", unsafe_allow_html=True)
        if st.button("Log out"):
            manager.logout()
            st.session_state.pop("auth_request", None)
            st.rerun()


render_left_rail(st.session_state.page, render_controls)

updated = view.get("updated", "--") if view else "--"
device_name = view.get("device", "") if view else ""
render_header_strip(f"Weather {device_name}".strip(), updated)

forecasts = []
if st.session_state.page == "home":
    for location in load_locations():
        hourly, forecast_status = load_forecast(location["latitude"], location["longitude"])
        forecasts.append({"location": location, "hourly": hourly, "status": forecast_status})

ctx = {
    "view": view,
    "status": status,
    "layout": render_main_layout,
    "forecasts": forecasts,
    "devices": presenter.devices,
    "raw_status": presenter.last_status,
    "auth_mode": "Personal access token" if SMARTTHINGS_PAT else "OAuth",
    "token_expires": token_expiry_text(manager),
}

if st.session_state.page == "data":
    page_data.render(ctx)
else:
    page_home.render(ctx)
