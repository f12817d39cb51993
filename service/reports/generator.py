"""Report section generation with active-model selection."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import config
from finetune.models import ACTIVE_MODEL_KEY
from inference.client import InferenceClient
from reports.prompts import NO_WEATHER_SECTIONS, build_section_prompt, normalize_section
from stores import SettingsStore
from weather.client import WeatherClient, WeatherResult, parse_date

log = logging.getLogger(__name__)


@dataclass
class SectionResult:
    section: str
    section_name: str
    weather_data: dict[str, Any] = field(default_factory=dict)
    model: str = ""


class ReportSectionGenerator:
    def __init__(
        self,
        settings: SettingsStore,
        inference: InferenceClient,
        weather: WeatherClient | None = None,
    ):
        self.settings = settings
        self.inference = inference
        self.weather = weather or WeatherClient()

    async def resolve_active_model(self) -> str:
        """Active fine-tuned model, or the default when unset or unreadable."""
        try:
            value = await asyncio.to_thread(self.settings.get, ACTIVE_MODEL_KEY)
        except Exception as exc:
            log.error("Error retrieving %s, using default model: %s", ACTIVE_MODEL_KEY, exc)
            return config.DEFAULT_MODEL
        value = (value or "").strip()
        return value or config.DEFAULT_MODEL

    async def _weather_for(self, section: str, context: dict[str, Any]) -> WeatherResult:
        if normalize_section(section) in NO_WEATHER_SECTIONS:
            return WeatherResult(success=True)
        day = parse_date(context.get("dateOfLoss"))
        address = context.get("address")
        if day is None or not address:
            return WeatherResult(success=True)
        return await self.weather.get_weather_summary(str(address), day.isoformat())

    async def generate_section(
        self,
        section: str,
        context: dict[str, Any] | None,
        custom_instructions: str | None = None,
    ) -> SectionResult:
        context = context or {}
        weather = await self._weather_for(section, context)
        prompt = build_section_prompt(section, context, weather.data, custom_instructions)
        model = await self.resolve_active_model()

        text = await self.inference.complete(
            model,
            [{"role": "system", "content": prompt}],
            temperature=config.SECTION_TEMPERATURE,
            max_output_tokens=config.SECTION_MAX_TOKENS,
        )
        log.info("Generated section %r with model %s", section, model)
        return SectionResult(
            section=text or "",
            section_name=section,
            weather_data=weather.data,
            model=model,
        )
