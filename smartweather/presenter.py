import threading
from contextlib import closing
from datetime import datetime
from pathlib import Path

from smartweather import classifier
from smartweather.config_store import connect, get_config, set_config
from smartweather.errors import DeviceNotFoundError
from smartweather.log import log
from smartweather.smartthings import DeviceSummary, SmartThingsClient, sensor_reading_from_status

SELECTED_DEVICE_KEY = "selected_device_id"


def _fmt(value, fmt_str="{:.1f}", fallback="N/A"):
    if value is None:
        return fallback
    try:
        return fmt_str.format(value)
    except (TypeError, ValueError):
        return str(value)


def build_view_model(reading: dict, now: datetime | None = None) -> dict:
    """Classify a sensor reading into everything the home page draws."""
    now = now or datetime.now()
    temp = reading.get("temperature")
    humidity = reading.get("humidity")
    pressure = reading.get("pressure")
    aqi_raw = reading.get("aqi")

    band = classifier.clothing_for(temp) if temp is not None else None
    aqi = classifier.aqi_category_for(aqi_raw)
    if aqi_raw is None:
        aqi_label = "N/A"
    elif classifier.resolve_aqi_index(aqi_raw) == 0:
        aqi_label = str(aqi_raw)
    else:
        aqi_label = aqi.label

    particulates = []
    for metric, label in (("pm10", "PM10"), ("pm25", "PM2.5"), ("pm1", "PM1")):
        value = reading.get(metric)
        particulates.append(
            {
                "metric": metric,
                "label": label,
                "value": value,
                "text": _fmt(value, "{:.1f} µg/m³"),
                "color": classifier.particulate_color(value) if value is not None else classifier.NEUTRAL_COLOR,
            }
        )

    return {
        "temperature": {
            "value": temp,
            "text": _fmt(temp, "{:.1f}°C"),
            "band": band.name if band else None,
            "color": band.color if band else classifier.NEUTRAL_COLOR,
            "clothing": list(band.items) if band else [],
        },
        "aqi": {
            "raw": aqi_raw,
            "label": aqi_label,
            "message": aqi.message,
            "color": aqi.color,
            "icon": aqi.icon,
        },
        "particulates": particulates,
        "humidity": {
            "value": humidity,
            "text": _fmt(humidity, "{:.0f}%"),
            "color": classifier.humidity_color(humidity) if humidity is not None else classifier.NEUTRAL_COLOR,
        },
        "pressure": {
            "value": pressure,
            "text": _fmt(pressure, "{:.1f} hPa"),
            "color": classifier.pressure_color(pressure) if pressure is not None else classifier.NEUTRAL_COLOR,
            "available": pressure is not None,
        },
        "season": classifier.season_for(now.month),
        "updated": now.strftime("%H:%M:%S"),
    }


class DashboardPresenter:
    def __init__(self, client: SmartThingsClient, db_path: str | Path):
        self.client = client
        self.db_path = db_path
        self.devices: list[DeviceSummary] = []
        self.selected: DeviceSummary | None = None
        self.last_status: dict | None = None
        self.last_view: dict | None = None
        self._in_flight = threading.Lock()

    def _load_preferred_id(self) -> str | None:
        with closing(connect(self.db_path)) as conn:
            return get_config(conn, SELECTED_DEVICE_KEY)

    def select_device(self, device_id: str) -> DeviceSummary:
        for device in self.devices:
            if device.id == device_id:
                self.selected = device
                with closing(connect(self.db_path)) as conn:
                    set_config(conn, SELECTED_DEVICE_KEY, device.id)
                return device
        raise DeviceNotFoundError(f"Device {device_id} is not a known weather device")

    def discover(self) -> list[DeviceSummary]:
        self.devices = self.client.find_weather_devices()
        preferred = self._load_preferred_id()
        choice = next((d for d in self.devices if d.id == preferred), self.devices[0])
        self.select_device(choice.id)
        log(f"Selected device {choice.display_name} ({choice.id})")
        return self.devices

    def refresh(self, now: datetime | None = None) -> dict | None:
        """
        Fetch and classify the selected device. Returns None without doing
        anything if another refresh is still running.
        """
        if not self._in_flight.acquire(blocking=False):
            log("Refresh skipped; previous fetch still running")
            return None
        try:
            if self.selected is None:
                self.discover()
            status = self.client.get_device_status(self.selected.id)
            self.last_status = status
            reading = sensor_reading_from_status(status)
            self.last_view = build_view_model(reading, now=now)
            self.last_view["device"] = self.selected.display_name
            self.last_view["reading"] = reading
            return self.last_view
        finally:
            self._in_flight.release()
