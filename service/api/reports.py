"""Report generation API routes."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Body

from api.deps import GenerateSectionRequest, build_generator, error_response, failure_response

log = logging.getLogger("reportsmith")
router = APIRouter()


@router.post("/reports/section", operation_id="post_report_section")
@router.post("/generate-report", operation_id="post_generate_report_legacy")
async def generate_section(
    body: GenerateSectionRequest | None = Body(None),
):
    req = body or GenerateSectionRequest()
    if not (req.section or "").strip():
        return error_response(400, "Missing section in request body.", code="VALIDATION_ERROR")

    generator = build_generator()
    try:
        result = await generator.generate_section(req.section, req.context, req.customInstructions)
    except Exception as exc:
        return failure_response("Failed to generate report section", exc)

    return {
        "section": result.section,
        "sectionName": result.section_name,
        "weatherData": result.weather_data,
    }
