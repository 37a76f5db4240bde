"""
Color and advice lookups for the dashboard panels.

Everything here is a pure function of its input. Band and tier boundaries are
inclusive on the listed value, so 0 C is freezing and 12 ug/m3 is still good.
"""

import math
import re
from dataclasses import dataclass


@dataclass(frozen=True)
class ClothingBand:
    name: str
    max_c: float
    items: tuple[str, ...]
    color: str


@dataclass(frozen=True)
class AqiCategory:
    label: str
    message: str
    color: str
    icon: str


CLOTHING_BANDS = (
    ClothingBand("freezing", 0, ("❄️ Heavy Coat", "🧤 Gloves", "🧣 Scarf", "🎿 Warm Boots"), "#0066ff"),
    ClothingBand("cold", 10, ("🧥 Jacket", "👖 Long Pants", "👢 Shoes"), "#0099ff"),
    ClothingBand("cool", 15, ("🧥 Light Jacket", "👖 Long Pants", "👟 Sneakers"), "#00ccff"),
    ClothingBand("mild", 20, ("👕 Long Sleeve Shirt", "👖 Long Pants"), "#00ff99"),
    ClothingBand("warm", 25, ("👕 T-Shirt", "👖 Shorts or Light Pants"), "#ffff00"),
    ClothingBand("hot", 30, ("👕 T-Shirt", "🩳 Shorts"), "#ff9900"),
    ClothingBand("very hot", math.inf, ("👕 Light T-Shirt", "🩳 Shorts", "🕶️ Sunglasses"), "#ff3300"),
)

# index -> category; 0 is also the fallback for anything unrecognized
AQI_CATEGORIES = (
    AqiCategory("Unknown", "Unknown", "#cccccc", "❓"),
    AqiCategory("Good", "Air quality is good", "#28a745", "😊"),
    AqiCategory("Moderate", "Acceptable air quality", "#ffc107", "🙂"),
    AqiCategory("Slightly Unhealthy", "Sensitive groups should limit outdoor activity", "#fd7e14", "😕"),
    AqiCategory("Unhealthy", "WEAR MASK - Unhealthy air", "#dc3545", "☹️"),
    AqiCategory("Very Unhealthy", "STAY INDOORS - Very unhealthy", "#6f42c1", "🤢"),
    AqiCategory("Hazardous", "HAZARDOUS - DO NOT GO OUTSIDE", "#721c24", "☠️"),
)

AQI_ALIASES = {
    "unknown": 0,
    "good": 1,
    "moderate": 2,
    "fair": 2,
    "slightly unhealthy": 3,
    "slightlyunhealthy": 3,
    "unhealthy": 4,
    "poor": 4,
    "very unhealthy": 5,
    "veryunhealthy": 5,
    "very poor": 5,
    "verypoor": 5,
    "extremely poor": 6,
    "extremelypoor": 6,
    "hazardous": 6,
}

PM_TIERS = (
    (12, "#00aa00"),
    (35, "#ffaa00"),
    (55, "#ff6600"),
    (150, "#ff3300"),
)
PM_WORST = "#990000"

HUMIDITY_DRY = "#0099ff"
HUMIDITY_GOOD = "#00cc00"
HUMIDITY_HUMID = "#ffaa00"
HUMIDITY_VERY_HUMID = "#ff6600"

PRESSURE_FAVORABLE = "#00cc00"
PRESSURE_STABLE = "#ffaa00"
PRESSURE_UNFAVORABLE = "#ff6600"

NEUTRAL_COLOR = "#666666"

SEVERITY_ORDER = [color for _, color in PM_TIERS] + [PM_WORST]


def clothing_for(temp_c: float) -> ClothingBand:
    for band in CLOTHING_BANDS:
        if temp_c <= band.max_c:
            return band
    # NaN compares false against every bound
    return CLOTHING_BANDS[-1]


def resolve_aqi_index(value) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not value.is_integer():
            return 0
        index = int(value)
        return index if 0 <= index < len(AQI_CATEGORIES) else 0
    if isinstance(value, str):
        key = re.sub(r"\s+", " ", value.lower()).strip()
        return AQI_ALIASES.get(key, 0)
    return 0


def aqi_category_for(value) -> AqiCategory:
    return AQI_CATEGORIES[resolve_aqi_index(value)]


def particulate_color(concentration: float) -> str:
    for limit, color in PM_TIERS:
        if concentration <= limit:
            return color
    return PM_WORST


def humidity_color(percent: float) -> str:
    if percent < 30:
        return HUMIDITY_DRY
    if percent < 50:
        return HUMIDITY_GOOD
    if percent < 70:
        return HUMIDITY_HUMID
    return HUMIDITY_VERY_HUMID


def pressure_color(hpa: float) -> str:
    if hpa >= 1013:
        return PRESSURE_FAVORABLE
    if hpa >= 1009:
        return PRESSURE_STABLE
    return PRESSURE_UNFAVORABLE


def severity_of(color: str) -> int:
    """Rank of a particulate color, 0 = good."""
    return SEVERITY_ORDER.index(color)


def season_for(month: int) -> str:
    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    if 9 <= month <= 11:
        return "autumn"
    return "winter"
