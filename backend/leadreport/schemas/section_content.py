# backend/leadreport/schemas/section_content.py
"""
Canonical shape of one AI-generated report section.

Everything stored under ``aiContent[section]`` is a dump of one of the two
models below; raw LLM output never reaches the store.
"""
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SECTIONS: tuple[str, ...] = (
    "overview",
    "company",
    "meeting",
    "interactions",
    "competitors",
    "techStack",
    "news",
    "nextSteps",
)

INSUFFICIENT_DATA_MESSAGE = (
    "Not enough specific information is available to generate meaningful "
    "insights for this section."
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class DosDonts(_CamelModel):
    do: list[str] = []
    dont: list[str] = []


class RecommendedAction(_CamelModel):
    description: str
    rationale: str | None = None
    priority: str | None = None


# competitor / technology entries may be plain names or small records
Record = dict[str, str]


class InsufficientData(_CamelModel):
    insufficient_data: Literal[True] = Field(True, alias="insufficient_data")
    message: str = INSUFFICIENT_DATA_MESSAGE


class PopulatedContent(_CamelModel):
    insufficient_data: Literal[False] = Field(False, alias="insufficient_data")
    is_general_insight: bool | None = None

    summary: str | None = None
    key_points: list[str] | None = None

    description: str | None = None
    market_position: str | None = None
    challenges: list[str] | None = None

    competitors: list[str | Record] | None = None
    main_competitors: list[str | Record] | None = None
    competitive_advantage: str | None = None
    market_dynamics: str | None = None

    current_technologies: list[str | Record] | None = None
    pain_points: list[str] | None = None
    opportunities: list[str] | None = None
    recommendations: list[str | Record] | None = None
    recommended_actions: list[RecommendedAction] | None = None

    relevant_industry_trends: list[str] | None = None

    communication_preferences: str | None = None
    personalization_tips: list[str] | None = None
    dos_donts: DosDonts | str | None = None

    suggested_agenda: str | None = None
    key_questions: list[str] | None = None
    preparation_tips: str | None = None


SectionContent = Union[InsufficientData, PopulatedContent]


def to_document(content: SectionContent) -> dict:
    """Serialise for storage / API output (camelCase, no empty optionals)."""
    return content.model_dump(by_alias=True, exclude_none=True)
