import os
from dataclasses import dataclass
from typing import Any, Callable

import requests

from smartweather.errors import ApiError, DeviceNotFoundError, NetworkError, NotAuthorizedError
from smartweather.log import log

API_BASE_URL = os.getenv("SMARTTHINGS_API_URL", "https://api.smartthings.com/v1").rstrip("/")
HTTP_TIMEOUT = int(os.getenv("SMARTTHINGS_HTTP_TIMEOUT", "30"))

WEATHER_CAPABILITIES = frozenset(
    {
        "temperatureMeasurement",
        "relativeHumidityMeasurement",
        "atmosphericPressureMeasurement",
        "dustSensor",
        "fineDustSensor",
        "veryFineDustSensor",
        "pm25Measurement",
    }
)

# metric -> (capability, attribute) in the main component status
STATUS_FIELDS = {
    "temperature": ("temperatureMeasurement", "temperature"),
    "humidity": ("relativeHumidityMeasurement", "humidity"),
    "pm1": ("veryFineDustSensor", "veryFineDustLevel"),
    "pm25": ("fineDustSensor", "fineDustLevel"),
    "pm10": ("dustSensor", "dustLevel"),
    "aqi": ("airQualityHealthConcern", "airQualityHealthConcern"),
    "pressure": ("atmosphericPressureMeasurement", "atmosphericPressure"),
}
METRICS = tuple(STATUS_FIELDS)


@dataclass(frozen=True)
class DeviceSummary:
    id: str
    display_name: str
    capabilities: frozenset


def to_float(x):
    try:
        return None if x is None else float(x)
    except (TypeError, ValueError):
        return None


def f_to_c(f: float) -> float:
    return (f - 32.0) * 5.0 / 9.0


def is_weather_device(device: DeviceSummary) -> bool:
    if device.capabilities & WEATHER_CAPABILITIES:
        return True
    return any(cap.startswith("airQuality") for cap in device.capabilities)


def device_from_payload(item: dict) -> DeviceSummary:
    caps = set()
    for component in item.get("components") or []:
        for cap in component.get("capabilities") or []:
            cap_id = cap.get("id") if isinstance(cap, dict) else cap
            if cap_id:
                caps.add(str(cap_id))
    device_id = str(item.get("deviceId") or "")
    name = item.get("label") or item.get("name") or device_id
    return DeviceSummary(id=device_id, display_name=str(name), capabilities=frozenset(caps))


def sensor_reading_from_status(status: dict) -> dict[str, Any]:
    """
    Flatten a main-component status payload into {metric: value}.
    Metrics the device does not report are left out.
    """
    reading: dict[str, Any] = {}
    if not isinstance(status, dict):
        return reading
    for metric, (capability, attribute) in STATUS_FIELDS.items():
        block = status.get(capability)
        if not isinstance(block, dict):
            continue
        measurement = block.get(attribute)
        if not isinstance(measurement, dict):
            continue
        value = measurement.get("value")
        if value is None:
            continue
        unit = measurement.get("unit")

        if metric == "aqi":
            reading[metric] = value if isinstance(value, str) else to_float(value)
            if isinstance(reading[metric], float) and reading[metric].is_integer():
                reading[metric] = int(reading[metric])
            continue

        number = to_float(value)
        if number is None:
            continue
        if metric == "temperature" and unit == "F":
            number = f_to_c(number)
        if metric == "pressure" and unit == "kPa":
            number = number * 10.0
        reading[metric] = number
    return reading


class SmartThingsClient:
    """
    Thin wrapper over the devices API. The bearer token comes from
    `token_provider`, normally CredentialManager.get_valid_access_token.
    """

    def __init__(
        self,
        token_provider: Callable[[], str],
        session=None,
        base_url: str = API_BASE_URL,
        timeout: int = HTTP_TIMEOUT,
    ):
        self.token_provider = token_provider
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, path: str) -> dict:
        token = self.token_provider()
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NetworkError(f"GET {path} failed: {exc}") from exc

        if resp.status_code == 401:
            raise NotAuthorizedError("SmartThings rejected the access token")
        if not 200 <= resp.status_code < 300:
            raise ApiError(f"GET {path} failed", resp.status_code, resp.text or "")
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError(f"GET {path} returned invalid JSON", resp.status_code, resp.text or "") from exc

    def list_devices(self) -> list[DeviceSummary]:
        payload = self._get("/devices")
        items = payload.get("items") if isinstance(payload, dict) else None
        return [device_from_payload(item) for item in items or [] if isinstance(item, dict)]

    def find_weather_devices(self) -> list[DeviceSummary]:
        devices = self.list_devices()
        weather = [device for device in devices if is_weather_device(device)]
        log(f"Discovery: {len(devices)} device(s), {len(weather)} weather device(s)")
        if not weather:
            raise DeviceNotFoundError("No weather device found on this SmartThings account")
        return weather

    def get_device_status(self, device_id: str) -> dict:
        quoted = requests.utils.quote(device_id, safe="")
        payload = self._get(f"/devices/{quoted}/components/main/status")
        return payload if isinstance(payload, dict) else {}

    def get_sensor_reading(self, device_id: str) -> dict[str, Any]:
        return sensor_reading_from_status(self.get_device_status(device_id))


def static_token(token: str) -> Callable[[], str]:
    """Token provider for a SmartThings personal access token."""

    def provider() -> str:
        if not token:
            raise NotAuthorizedError("Personal access token is empty")
        return token

    return provider
