# backend/leadreport/services/writer.py

from __future__ import annotations

import logging
import textwrap
from typing import Any, Mapping

from openai import OpenAIError

from ..core.config import get_settings
from .errors import GenerationError, Result
from .llm import ChatCompletionProvider

logger = logging.getLogger(__name__)

MAX_NARRATIVE_TOKENS = 1500

SYSTEM_PROMPT = (
    "You are a professional lead researcher. Create a detailed, well-structured "
    "report based on the provided data. Focus on business value, decision-making "
    "capacity and potential engagement strategies. Use markdown formatting. "
    "Never invent facts that are not in the data; write 'N/A' where a value is missing."
)


def _v(value: Any) -> str:
    if value in (None, "", [], {}):
        return "N/A"
    return str(value)


def build_report_prompt(lead_data: Mapping[str, Any]) -> str:
    contact = lead_data.get("contactDetails") or {}
    company = lead_data.get("companyDetails") or {}
    scoring = lead_data.get("leadScoring") or {}
    criteria = scoring.get("qualificationCriteria") or {}

    criteria_lines = "\n".join(
        f"- **{label}:** {_v(criteria.get(key))}"
        for key, label in (
            ("decisionMaker", "Decision Maker"),
            ("viewedSolutionDeck", "Viewed Solution Deck"),
            ("haveBudget", "Have Budget"),
            ("need", "Need"),
        )
    )

    context_lines = "\n".join(
        f"- **{label}:** {lead_data[key]}"
        for key, label in (
            ("leadIndustry", "Lead industry (from submitter)"),
            ("leadDesignation", "Lead designation (from submitter)"),
            ("leadBackground", "Lead background (from submitter)"),
            ("companyOverview", "Company overview (from submitter)"),
        )
        if lead_data.get(key)
    )

    prompt = textwrap.dedent(
        f"""
        Create a professional lead report with the following structure:

        # {_v(lead_data.get("name"))}
        ## {_v(lead_data.get("position"))} at {_v(lead_data.get("companyName"))}

        ### Contact Details
        - **LinkedIn:** {_v(contact.get("linkedin"))}
        - **Email:** {_v(contact.get("email"))}

        ### About Lead
        {_v(lead_data.get("aboutLead"))}

        ### About Company
        {_v(lead_data.get("aboutCompany"))}

        ### Company Details
        - **Company HQ:** {_v(company.get("headquarters"))}
        - **Company Website:** {_v(company.get("website"))}
        - **Industry:** {_v(company.get("industry"))}
        - **Employee Count:** {_v(company.get("employees"))}

        ### Lead Scoring
        **Lead Rating:** {_v(scoring.get("rating"))}

        #### Qualification Criteria
        """
    ).strip()
    prompt += "\n" + criteria_lines

    if context_lines:
        prompt += "\n\n### Additional Context\n" + context_lines

    prompt += (
        "\n\n### Engagement Strategy\n"
        "Provide specific recommendations for engaging with this lead based on "
        "their profile and company details."
    )
    return prompt


class NarrativeWriter:
    """Long-form markdown lead report. Mandatory step of the pipeline."""

    def __init__(self, provider: ChatCompletionProvider | None = None) -> None:
        self.provider = provider or ChatCompletionProvider()

    def generate(self, lead_data: Mapping[str, Any]) -> Result[str, GenerationError]:
        settings = get_settings()
        try:
            text = self.provider.complete(
                SYSTEM_PROMPT,
                build_report_prompt(lead_data),
                model=settings.LLM_NARRATIVE_MODEL,
                temperature=0.7,
                max_tokens=MAX_NARRATIVE_TOKENS,
            )
        except (OpenAIError, RuntimeError) as e:
            logger.warning("Narrative generation failed: %s", e, extra={"step": "narrative"})
            return Result.failure(GenerationError(str(e)))

        if not isinstance(text, str) or not text.strip():
            return Result.failure(GenerationError("LLM returned an empty report"))
        return Result.success(text.strip())
