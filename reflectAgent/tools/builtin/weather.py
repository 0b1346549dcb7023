"""Weather lookup tool (simulated data)."""

import random
from typing import Annotated

from langchain_core.tools import tool

_CONDITIONS = ["Sunny", "Cloudy", "Rainy", "Partly Cloudy", "Overcast", "Foggy"]


@tool
def get_weather(location: Annotated[str, "City name (e.g. 'Tokyo', 'London')"]) -> str:
    """Get current weather for a location. Returns simulated demonstration data."""
    temp = random.randint(5, 34)
    humidity = random.randint(30, 79)
    wind = random.randint(5, 34)
    return (
        f"Weather in {location}:\n"
        f"• Temperature: {temp}°C ({round(temp * 9 / 5 + 32)}°F)\n"
        f"• Conditions: {random.choice(_CONDITIONS)}\n"
        f"• Humidity: {humidity}%\n"
        f"• Wind: {wind} km/h\n\n"
        "Note: This is simulated data for demonstration purposes."
    )


__all__ = ["get_weather"]
