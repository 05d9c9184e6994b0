"""
API routes for the Mars Rover service.
"""

import random
from typing import List

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from ..weather import generate_forecast
from .schemas import WeatherForecast

logger = structlog.get_logger(__name__)

greeting_router = APIRouter(tags=["Greeting"])
weather_router = APIRouter(tags=["Weather"])


def get_rng(request: Request) -> random.Random:
    """Random source owned by the application (see create_app)."""
    return request.app.state.rng


@greeting_router.get("/hello", response_class=PlainTextResponse, summary="Say hello")
async def hello() -> str:
    return "Hello World!"


@weather_router.get(
    "/weatherforecast",
    response_model=List[WeatherForecast],
    operation_id="GetWeatherForecast",
    summary="Get weather forecast",
    description="Retrieves a 5-day weather forecast for Mars operation",
)
async def get_weather_forecast(
    request: Request,
    rng: random.Random = Depends(get_rng),
) -> List[WeatherForecast]:
    forecast = generate_forecast(rng)

    request.app.state.forecast_counter.add(len(forecast))
    logger.debug("forecast_generated", entries=len(forecast))
    return forecast
