# backend/leadreport/services/ai_content.py

from __future__ import annotations

import logging
import textwrap
from typing import Any, Mapping

from openai import OpenAIError

from ..core.config import get_settings
from ..schemas.section_content import SECTIONS
from .errors import ParseError, Result, SectionGenerationError
from .llm import ChatCompletionProvider
from .normalizer import extract_json

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Section Specifications
# -----------------------------------------------------------------------------

SECTION_SPECS: dict[str, str] = {
    "overview": (
        "Give a brief overview of this lead: a 1-2 sentence 'summary' and at most "
        "3 'keyPoints' most relevant for sales."
    ),
    "company": (
        "Describe the company: a 1-2 sentence 'description', a one-sentence "
        "'marketPosition', and 2-3 'challenges' the company likely faces."
    ),
    "meeting": (
        "Prepare general guidance for an upcoming meeting: a short 'suggestedAgenda', "
        "'keyQuestions' (array, standard discovery questions for this industry and role) "
        "and brief 'preparationTips'. Do not invent projects or needs that are not in the data."
    ),
    "interactions": (
        "Give guidance for effective interactions with this lead: "
        "'communicationPreferences', 'personalizationTips' (array) and 'dosDonts' as an "
        "object with 'do' and 'dont' arrays. Do not claim personal preferences that are "
        "not in the data."
    ),
    "competitors": (
        "Summarise the competitive landscape: at most 3 'mainCompetitors' (competitor "
        "types or categories), one sentence of 'competitiveAdvantage' and one sentence "
        "of 'marketDynamics'."
    ),
    "techStack": (
        "Describe the likely technology landscape: 2-3 'currentTechnologies' "
        "(categories) and 1-2 technology 'painPoints'."
    ),
    "news": (
        "List at most 3 'relevantIndustryTrends' (array), one specific sentence each. "
        "Do not reference specific articles or events unless they are listed below."
    ),
    "nextSteps": (
        "Recommend at most 2 next actions as 'recommendedActions', an array of objects "
        "with 'description' (1 sentence), 'rationale' (under 10 words) and 'priority' "
        "(High, Medium or Low). Do not mention the person reading the report."
    ),
}

ADVISORY_SECTIONS = ("nextSteps", "interactions")
_ADVISORY_NAMES = " and ".join(repr(s) for s in ADVISORY_SECTIONS)

SYSTEM_PROMPT = textwrap.dedent(
    f"""
    You are a sales intelligence assistant producing short, specific insights
    for a lead report. Respond with a single JSON object and nothing else.

    Rules:
    - Summaries are 1-2 sentences; lists have at most 3 items.
    - Only state company-specific facts that appear in the provided data.
      Never invent statistics, names or events.
    - General industry knowledge is allowed, but keep it clearly general and
      relevant to the lead's industry and role.
    - Only give recommendations, suggestions or tips in the
      {_ADVISORY_NAMES} sections. Every other
      section is strictly factual.
    - If the data is too thin for a useful answer, return
      {{"insufficient_data": true, "message": "<why>"}}.
    """
).strip()


def _fact_lines(lead_data: Mapping[str, Any], enrichment: Mapping[str, Any] | None) -> list[str]:
    company = lead_data.get("companyDetails") or {}
    org = (enrichment or {}).get("organization") or {}
    candidates = [
        ("Lead name", lead_data.get("name")),
        ("Position", lead_data.get("position")),
        ("Seniority", (enrichment or {}).get("seniority")),
        ("Company", lead_data.get("companyName")),
        ("Industry", company.get("industry") or lead_data.get("leadIndustry")),
        ("Company size", company.get("employees")),
        ("Headquarters", company.get("headquarters")),
        ("Website", company.get("website")),
        ("Founded", org.get("founded_year")),
        ("Company description", org.get("short_description")),
        ("Lead background", lead_data.get("leadBackground")),
        ("Company overview", lead_data.get("companyOverview")),
    ]
    # Only facts we actually have; "Unknown" placeholders invite guessing.
    return [f"{label}: {value}" for label, value in candidates if value not in (None, "", [], {})]


def build_section_prompt(
    section: str,
    lead_data: Mapping[str, Any],
    enrichment: Mapping[str, Any] | None = None,
    news: Mapping[str, Any] | None = None,
) -> str:
    instructions = SECTION_SPECS[section]
    facts = _fact_lines(lead_data, enrichment)
    parts = [
        "LEAD DATA:",
        "\n".join(f"- {line}" for line in facts) if facts else "- (no verified facts available)",
    ]

    articles = (news or {}).get("articles") or []
    if section == "news" and articles:
        parts.append("RECENT COMPANY NEWS:")
        parts.extend(f"- {a.get('title')} ({a.get('source')})" for a in articles if a.get("title"))

    parts.extend(
        [
            f"SECTION: {section}",
            instructions,
            "Return JSON with exactly these fields plus \"insufficient_data\": false, "
            "or the insufficient_data object if the data does not support this section.",
        ]
    )
    return "\n\n".join(parts)


def parse_completion(content: Any) -> Any:
    """
    Recover the JSON value from a completion.

    Accepts an already-parsed object, a JSON string (optionally fenced) or
    prose with one embedded object. Raises ``ParseError`` otherwise.
    """
    if isinstance(content, (dict, list)):
        return content
    if not isinstance(content, str):
        raise ParseError(f"Unsupported completion type: {type(content).__name__}")
    return extract_json(content)


class SectionContentGenerator:
    """
    Produces the raw, untrusted JSON for one report section.

    Nothing here is stored directly; every value goes through ``normalize``.
    """

    def __init__(self, provider: ChatCompletionProvider | None = None) -> None:
        self.provider = provider or ChatCompletionProvider()

    def generate(
        self,
        section: str,
        lead_data: Mapping[str, Any],
        enrichment: Mapping[str, Any] | None = None,
        news: Mapping[str, Any] | None = None,
    ) -> Result[Any, SectionGenerationError]:
        if section not in SECTIONS:
            return Result.failure(SectionGenerationError(section, f"Unknown section '{section}'"))

        user_prompt = build_section_prompt(section, lead_data, enrichment, news)
        settings = get_settings()
        try:
            content = self.provider.complete(
                SYSTEM_PROMPT,
                user_prompt,
                model=settings.LLM_MODEL,
                temperature=0.5,
                json_mode=True,
            )
            return Result.success(parse_completion(content))
        except ParseError as e:
            logger.warning("Unparseable section output: %s", e, extra={"section": section})
            return Result.failure(SectionGenerationError(section, f"Failed to parse AI response: {e}"))
        except (OpenAIError, RuntimeError) as e:
            logger.warning("Section generation failed: %s", e, extra={"section": section})
            return Result.failure(SectionGenerationError(section, f"Unable to generate AI content: {e}"))
