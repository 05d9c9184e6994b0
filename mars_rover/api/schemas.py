"""Response models for the Mars Rover API."""
import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel


class WeatherForecast(BaseModel):
    """One day of forecast. Serialized as {date, temperatureC, temperatureF, summary}."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    date: dt.date
    temperature_c: int
    summary: Optional[str] = None

    @computed_field(alias="temperatureF")
    @property
    def temperature_f(self) -> int:
        # Truncates toward zero, so -20C -> -3F.
        return 32 + int(self.temperature_c / 0.5556)
