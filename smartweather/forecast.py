import sqlite3

import pandas as pd
import requests

from smartweather.config_store import get_json, set_json
from smartweather.log import log

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
FORECAST_LOCATIONS_KEY = "forecast_locations"
HOURLY_FIELDS = ["temperature_2m", "precipitation"]
FORECAST_HOURS = 24

DEFAULT_FORECAST_LOCATIONS = [
    {"name": "Polanka Hallera", "latitude": 49.995, "longitude": 19.902},
    {"name": "Kraków", "latitude": 50.067, "longitude": 19.912},
]


def _valid_location(item) -> bool:
    if not isinstance(item, dict) or not item.get("name"):
        return False
    try:
        float(item["latitude"])
        float(item["longitude"])
    except (KeyError, TypeError, ValueError):
        return False
    return True


def load_forecast_locations(conn: sqlite3.Connection) -> list[dict]:
    stored = get_json(conn, FORECAST_LOCATIONS_KEY)
    if isinstance(stored, list):
        locations = [item for item in stored if _valid_location(item)]
        if locations:
            return locations
    return [dict(item) for item in DEFAULT_FORECAST_LOCATIONS]


def save_forecast_locations(conn: sqlite3.Connection, locations: list[dict]) -> None:
    cleaned = [
        {
            "name": str(item["name"]),
            "latitude": float(item["latitude"]),
            "longitude": float(item["longitude"]),
        }
        for item in locations
        if _valid_location(item)
    ]
    set_json(conn, FORECAST_LOCATIONS_KEY, cleaned)


def parse_openmeteo_hourly(payload: dict | None):
    """
    Turn an Open-Meteo payload into an hourly DataFrame with a tz-aware
    `time` column, `air_temperature` and `precipitation`.

    Returns (hourly_df | None, tz_name).
    """
    if not payload or not isinstance(payload, dict):
        return None, "UTC"
    tz_name = payload.get("timezone") or "UTC"
    hourly_raw = payload.get("hourly")
    if not isinstance(hourly_raw, dict) or "time" not in hourly_raw:
        return None, tz_name

    hourly_df = pd.DataFrame(hourly_raw)
    if hourly_df.empty:
        return None, tz_name
    hourly_df["time"] = pd.to_datetime(hourly_df["time"])
    try:
        hourly_df["time"] = hourly_df["time"].dt.tz_localize(tz_name)
    except Exception:
        hourly_df["time"] = hourly_df["time"].dt.tz_localize("UTC")
    hourly_df.rename(columns={"temperature_2m": "air_temperature"}, inplace=True)
    if "precipitation" in hourly_df:
        hourly_df["precipitation"] = hourly_df["precipitation"].fillna(0)
    return hourly_df.head(FORECAST_HOURS).reset_index(drop=True), tz_name


def fetch_openmeteo_forecast(lat, lon, session=None, timeout: int = 10):
    """Fetch the next 24h of hourly temperature and precipitation. Returns (hourly_df | None, status)."""
    if lat is None or lon is None:
        return None, "lat/lon missing"
    params = {
        "latitude": lat,
        "longitude": lon,
        "hourly": ",".join(HOURLY_FIELDS),
        "forecast_days": 1,
        "timezone": "auto",
    }
    http = session or requests
    try:
        resp = http.get(OPEN_METEO_URL, params=params, timeout=timeout)
        resp.raise_for_status()
        payload = resp.json()
    except (requests.RequestException, ValueError):
        return None, "Open-Meteo request failed"

    try:
        hourly_df, _ = parse_openmeteo_hourly(payload)
    except (ValueError, TypeError) as exc:
        log(f"Open-Meteo payload unreadable: {exc}")
        return None, "No data"
    if hourly_df is None:
        return None, "No data"
    return hourly_df, "OK"
