"""
Sample weather data for the rover.

The random source is passed in explicitly: seeded in tests for reproducible
fixtures, unseeded (OS entropy) in production.
"""
import datetime as dt
import random
from typing import List, Optional

from .api.schemas import WeatherForecast

SUMMARIES = (
    "Freezing",
    "Bracing",
    "Chilly",
    "Cool",
    "Mild",
    "Warm",
    "Balmy",
    "Hot",
    "Sweltering",
    "Scorching",
)

# Half-open: MIN_TEMPERATURE_C <= t < MAX_TEMPERATURE_C
MIN_TEMPERATURE_C = -20
MAX_TEMPERATURE_C = 55

FORECAST_DAYS = 5


def generate_forecast(
    rng: random.Random,
    today: Optional[dt.date] = None,
    days: int = FORECAST_DAYS,
) -> List[WeatherForecast]:
    """
    Build a forecast for the `days` days following `today`.

    Args:
        rng: Random source for temperatures and summaries
        today: Start date (defaults to the local date)
        days: Number of entries to produce

    Returns:
        One WeatherForecast per day, starting tomorrow
    """
    start = today or dt.date.today()
    return [
        WeatherForecast(
            date=start + dt.timedelta(days=index),
            temperature_c=rng.randrange(MIN_TEMPERATURE_C, MAX_TEMPERATURE_C),
            summary=rng.choice(SUMMARIES),
        )
        for index in range(1, days + 1)
    ]
