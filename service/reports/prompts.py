"""Section prompt assembly for forensic engineering reports."""
from __future__ import annotations

import json
from typing import Any

# Sections that never need a weather lookup.
NO_WEATHER_SECTIONS = frozenset({"tableofcontents", "openingletter", "introduction"})

ROOF_TYPE_FLAGS = (
    ("roofMetalChecked", "Metal"),
    ("roofCompChecked", "Composition Shingles"),
    ("roofSinglePlyChecked", "Single-Ply Membrane"),
    ("roofModBitChecked", "Modified Bitumen"),
    ("roofBURChecked", "Built Up Roofing (Gravel Ballast)"),
    ("roofClayTileChecked", "Clay Tile"),
    ("roofConcreteTileChecked", "Concrete Tile"),
)

TABLE_OF_CONTENTS = (
    "Opening Letter",
    "Introduction",
    "Authorization and Scope",
    "Background Information",
    "Site Observations and Analysis",
    "Survey",
    "Meteorologist Report",
    "Conclusions and Recommendations",
    "Rebuttal",
    "Limitations",
)


def normalize_section(name: Any) -> str:
    return str(name or "").strip().lower()


def safe_string(value: Any, fallback: str = "") -> str:
    if isinstance(value, str) and value.strip():
        return value
    return fallback


def safe_join(values: Any, separator: str = ", ") -> str:
    if isinstance(values, list) and values:
        return separator.join(str(v) for v in values)
    return ""


def roof_types(context: dict[str, Any]) -> str:
    return ", ".join(label for flag, label in ROOF_TYPE_FLAGS if context.get(flag))


def weather_summary(weather: dict[str, Any] | None) -> str:
    if not weather:
        return ""
    if weather.get("note"):
        return f"Weather Data Note: {weather['note']}"
    return json.dumps(weather, indent=2, ensure_ascii=False)


def _fields(context: dict[str, Any], weather: dict[str, Any] | None) -> dict[str, str]:
    names = (
        "investigationDate", "dateOfLoss", "propertyType", "propertyAge",
        "constructionType", "currentUse", "squareFootage", "address",
        "engineerName", "engineerEmail", "engineerLicense", "engineerPhone",
        "propertyOwnerName", "projectName",
    )
    out = {name: safe_string(context.get(name)) for name in names}
    out["claimTypes"] = safe_join(context.get("claimType"))
    out["affectedAreas"] = safe_join(context.get("affectedAreas"))
    out["roofTypes"] = roof_types(context)
    out["weather"] = weather_summary(weather)
    return out


def _system_instruction(f: dict[str, str]) -> str:
    return f"""
You are an expert forensic engineer generating professional report sections.
Use only the data from user inputs; do not invent details that contradict them.
Build sound, detailed and objective arguments that substantiate the claim.

Guidelines:
1. Formal, technical language with a logical flow.
2. Include the specific context details and support conclusions with evidence.
3. Incorporate custom instructions while maintaining professional standards.
4. Be as long and detailed as the section allows, with uniform formatting:
   bold main headings, regular body text.

Key constraints:
1. Do NOT invent roofing types beyond the indicated categories.
2. Do NOT mention multiple floors unless the user indicated them.
3. Keep the Date of Loss ({f['dateOfLoss']}) separate from the Inspection Date ({f['investigationDate']}).
4. If weather data is missing or the date is in the future, say so briefly instead of printing "N/A".
5. No placeholders such as [e.g., ...] or [Third Party].
6. Claim types: {f['claimTypes']}.
7. Indicated roof categories: {f['roofTypes']}.
8. Property address: {f['address']}.
9. Property owner / project: {f['propertyOwnerName']} / {f['projectName']}.
10. Building type: {f['propertyType']}, age: {f['propertyAge']}, use: {f['currentUse']}, sq ft: {f['squareFootage']}.
11. Weather data summary: {f['weather']}
"""


def _section_prompts(f: dict[str, str]) -> dict[str, str]:
    toc = "\n".join(TABLE_OF_CONTENTS)
    return {
        "introduction": f"""
You are writing the "Introduction" for a forensic engineering report.
- Address: {f['address']}
- Date of Loss: {f['dateOfLoss']}
- Investigation Date: {f['investigationDate']}
- Claim Type(s): {f['claimTypes']}
Explain the purpose of the inspection. Do not add contradictory roofing details.
""",
        "authorization": """
You are writing the "Authorization and Scope" section.
Include who authorized the work, the scope (site visit, photographs, etc.),
a summary of the major tasks and any available references.
""",
        "background": f"""
You are writing "Background Information."
- Property Type: {f['propertyType']}
- Age: {f['propertyAge']}
- Construction Type: {f['constructionType']}
- Current Use: {f['currentUse']}
- Square Footage: {f['squareFootage']}
- Project Name: {f['projectName']}
- Property Owner: {f['propertyOwnerName']}
No placeholders or contradictory information.
""",
        "observations": f"""
You are writing "Site Observations and Analysis."
Affected areas: {f['affectedAreas']}.
Roof categories indicated: {f['roofTypes']}.
Claim type(s): {f['claimTypes']}.
Only mention what the user indicated.
""",
        "moisture": """
You are writing the "Survey" (moisture) section.
Mention interior water intrusion only if the user indicated it; otherwise be concise.
""",
        "meteorologist": f"""
You are writing the "Meteorologist Report" section using this data:
{f['weather']}
If the data is unavailable or the date is in the future, say so.
""",
        "conclusions": """
You are writing "Conclusions and Recommendations."
Summarize the final opinion on the cause(s) of loss and propose next steps or repairs.
""",
        "rebuttal": """
You are writing the "Rebuttal" section.
Keep it minimal unless third-party or conflicting reports were provided.
""",
        "limitations": """
You are writing the "Limitations" section: data reliance, scope boundaries,
site access and similar disclaimers. No placeholders.
""",
        "tableofcontents": f"""
You are writing the "Table of Contents" section.
Print "**Table of Contents**" in bold on its own line, then exactly one
section name per line, with no extra words:
{toc}
""",
        "openingletter": f"""
You are writing the "Opening Letter" for the final report.
- Date of Loss: {f['dateOfLoss']}
- Investigation Date: {f['investigationDate']}
- Claim Type(s): {f['claimTypes']}
- Address: {f['address']}
- A brief greeting
- Signature block: {f['engineerName']}, License: {f['engineerLicense']}, Email: {f['engineerEmail']}, Phone: {f['engineerPhone']}
""",
    }


def build_section_prompt(
    section_name: str,
    context: dict[str, Any] | None,
    weather: dict[str, Any] | None,
    custom_instructions: str | None = None,
) -> str:
    """Single system prompt for one report section."""
    f = _fields(context or {}, weather)
    fallback = f"Write a professional section: {section_name}, using only user inputs."
    base = _section_prompts(f).get(normalize_section(section_name), fallback)
    custom = safe_string(custom_instructions)
    if custom:
        base = f"{base}\n\nAdditional instructions:\n{custom}"
    return f"""
{_system_instruction(f)}
Now produce the "{section_name}" section.
{base}
"""
