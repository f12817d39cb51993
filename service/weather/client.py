"""Historical weather lookup against WeatherAPI.com ``history.json``."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, UTC
from typing import Any

import httpx

import config

log = logging.getLogger(__name__)


@dataclass
class WeatherResult:
    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


def parse_date(value: Any) -> date | None:
    """Parse an ISO date/datetime string; ``None`` when missing or invalid."""
    text = str(value or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def summarize_history(payload: dict[str, Any]) -> dict[str, Any]:
    forecast_day = payload["forecast"]["forecastday"][0]
    day = forecast_day["day"]
    hours = forecast_day.get("hour") or []

    gusts = [float(h.get("gust_mph") or 0.0) for h in hours]
    max_gust = max(gusts) if gusts else 0.0
    max_gust_time = next((h.get("time", "") for h in hours if float(h.get("gust_mph") or 0.0) == max_gust), "")
    conditions = str((day.get("condition") or {}).get("text") or "")
    lowered = conditions.lower()

    return {
        "maxTemp": f"{day.get('maxtemp_f')}°F",
        "minTemp": f"{day.get('mintemp_f')}°F",
        "avgTemp": f"{day.get('avgtemp_f')}°F",
        "maxWindGust": f"{max_gust:g} mph",
        "maxWindTime": max_gust_time,
        "totalPrecip": f"{day.get('totalprecip_in')} inches",
        "humidity": f"{day.get('avghumidity')}%",
        "conditions": conditions,
        "hailPossible": "Yes" if "hail" in lowered else "No",
        "thunderstorm": "Yes" if "thunder" in lowered else "No",
    }


class WeatherClient:
    def __init__(
        self,
        *,
        api_key: str | None = None,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else config.WEATHER_API_KEY
        self.url = url or config.WEATHER_API_URL
        self.timeout = timeout or config.WEATHER_TIMEOUT_SECONDS
        self._transport = transport

    async def get_weather_summary(self, location: str | None, date_string: str | None) -> WeatherResult:
        """Day summary for ``location`` on ``date_string``. Never raises."""
        if not location or not date_string:
            return WeatherResult(success=True)
        day = parse_date(date_string)
        if day is None:
            return WeatherResult(success=True)
        if day > datetime.now(UTC).date():
            return WeatherResult(
                success=True,
                data={"note": f"Weather data not found for a future date: {day.isoformat()}"},
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(
                    self.url,
                    params={"key": self.api_key, "q": location, "dt": day.isoformat()},
                )
                resp.raise_for_status()
                payload = resp.json()
            return WeatherResult(success=True, data=summarize_history(payload))
        except Exception as exc:
            log.warning("Weather lookup failed for %s on %s: %s", location, day, exc)
            return WeatherResult(success=False, error=str(exc))
