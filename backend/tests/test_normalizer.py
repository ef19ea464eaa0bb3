"""
Tests for normalizer.py

Every shape a model has been seen to return for a field should come out in
the one canonical form, within the section's caps, and stay there on a
second pass.
"""
import pytest

from leadreport.schemas.section_content import (
    INSUFFICIENT_DATA_MESSAGE,
    SECTIONS,
    InsufficientData,
    PopulatedContent,
    to_document,
)
from leadreport.services.normalizer import (
    decode_list,
    extract_json,
    is_numeric_keyed,
    normalize,
    truncate,
)
from leadreport.services.errors import ParseError

from tests.fixtures.report_fixtures import SECTION_OUTPUTS


def _doc(section, raw):
    return to_document(normalize(section, raw))


# ---------------------------------------------------------------------------
# List decoding
# ---------------------------------------------------------------------------

class TestListShapes:
    """Each list encoding decodes to the same ordered sequence."""

    def test_plain_array(self):
        doc = _doc("overview", {"keyPoints": ["Alpha", "Beta"]})
        assert doc["keyPoints"] == ["Alpha", "Beta"]

    def test_numeric_keyed_object_sorted_by_integer(self):
        raw = {"keyPoints": {"2": "Gamma", "0": "Alpha", "1": "Beta"}}
        assert _doc("overview", raw)["keyPoints"] == ["Alpha", "Beta", "Gamma"]

    def test_numeric_keys_compare_as_integers(self):
        raw = {"0": "a", "1": "b", "2": "c", "10": "k", "3": "d"}
        assert decode_list(raw) == ["a", "b", "c", "d", "k"]

    def test_mixed_keys_are_not_numeric(self):
        assert is_numeric_keyed({"0": "a", "name": "b"}) is False
        assert is_numeric_keyed({}) is False

    def test_bulleted_string(self):
        raw = {"keyPoints": "- Fast growth\n• New CFO\n* Hiring engineers"}
        assert _doc("overview", raw)["keyPoints"] == ["Fast growth", "New CFO", "Hiring engineers"]

    def test_inline_numbered_string(self):
        raw = {"keyPoints": "1. Alpha launch 2. Beta pricing 3) Gamma region"}
        assert _doc("overview", raw)["keyPoints"] == ["Alpha launch", "Beta pricing", "Gamma region"]

    def test_semicolon_delimited_string(self):
        raw = {"keyPoints": "Budget approved; Pilot in Q1"}
        assert _doc("overview", raw)["keyPoints"] == ["Budget approved", "Pilot in Q1"]

    def test_json_array_inside_string(self):
        raw = {"keyPoints": '["Alpha", "Beta"]'}
        assert _doc("overview", raw)["keyPoints"] == ["Alpha", "Beta"]

    def test_period_separated_sentences(self):
        raw = {"keyPoints": "Acme grew 40% last year. It hired a new CFO."}
        assert _doc("overview", raw)["keyPoints"] == ["Acme grew 40% last year.", "It hired a new CFO."]

    def test_single_plain_sentence(self):
        raw = {"keyPoints": "Acme is expanding into Europe"}
        assert _doc("overview", raw)["keyPoints"] == ["Acme is expanding into Europe"]

    def test_array_of_objects_flattened_for_string_lists(self):
        raw = {"keyPoints": [{"text": "Alpha"}, {"title": "Beta"}, {"unrelated": 1}]}
        assert _doc("overview", raw)["keyPoints"] == ["Alpha", "Beta"]

    def test_markers_stripped_but_prose_kept(self):
        raw = {"keyPoints": ["- 1. Nested marker", "-5% churn last quarter", "3.5x pipeline growth"]}
        assert _doc("overview", raw)["keyPoints"] == [
            "Nested marker",
            "-5% churn last quarter",
            "3.5x pipeline growth",
        ]


# ---------------------------------------------------------------------------
# Caps and budgets
# ---------------------------------------------------------------------------

class TestCapsAndBudgets:
    def test_key_points_capped_at_three(self):
        raw = {"keyPoints": ["a", "b", "c", "d", "e"]}
        assert _doc("overview", raw)["keyPoints"] == ["a", "b", "c"]

    def test_pain_points_capped_at_two(self):
        raw = {"painPoints": ["a", "b", "c"]}
        assert _doc("techStack", raw)["painPoints"] == ["a", "b"]

    def test_summary_truncated_to_budget(self):
        summary = "word " * 80
        out = _doc("overview", {"summary": summary})["summary"]
        assert len(out) <= 200
        assert out.endswith("...")

    def test_market_position_budget(self):
        out = _doc("company", {"marketPosition": "x" * 400})["marketPosition"]
        assert len(out) <= 150

    def test_short_text_untouched(self):
        assert truncate("short", 200) == "short"

    def test_competitor_records_kept_and_capped(self):
        doc = _doc("competitors", SECTION_OUTPUTS["competitors"])
        assert doc["mainCompetitors"] == [
            {"name": "Locus Robotics", "focus": "AMRs"},
            "6 River Systems",
            {"name": "Fetch"},
        ]


# ---------------------------------------------------------------------------
# Advisory content policy
# ---------------------------------------------------------------------------

class TestAdvisoryPolicy:
    """Recommendation-like fields only survive in nextSteps and interactions."""

    def test_company_recommendations_removed(self):
        doc = _doc("company", SECTION_OUTPUTS["company"])
        assert "recommendations" not in doc
        assert doc["challenges"] == [
            "Long sales cycles",
            "Integration with legacy WMS",
            "Hiring robotics talent",
        ]

    def test_tech_stack_opportunities_and_recommendations_removed(self):
        doc = _doc("techStack", SECTION_OUTPUTS["techStack"])
        assert "opportunities" not in doc
        assert "recommendations" not in doc
        assert doc["painPoints"] == ["Fleet observability.", "Legacy WMS connectors."]

    def test_next_steps_keeps_advisory_fields(self):
        raw = {"recommendations": ["Offer a pilot"], "opportunities": ["Upsell analytics"]}
        doc = _doc("nextSteps", raw)
        assert doc["recommendations"] == ["Offer a pilot"]
        assert doc["opportunities"] == ["Upsell analytics"]

    def test_interactions_keeps_personalization_tips(self):
        doc = _doc("interactions", SECTION_OUTPUTS["interactions"])
        assert doc["personalizationTips"] == ["Reference the ProMat booth", "Mention WMS integrations"]

    def test_meeting_keeps_preparation_tips(self):
        doc = _doc("meeting", SECTION_OUTPUTS["meeting"])
        assert doc["preparationTips"] == "Review Acme's latest product page."

        doc = _doc("overview", {"summary": "Acme builds robots.", "preparationTips": "Read up"})
        assert doc["summary"] == "Acme builds robots."
        assert "preparationTips" not in doc

    def test_section_with_only_advisory_output_is_insufficient(self):
        doc = _doc("overview", {"recommendations": ["Call them"], "tips": ["Be nice"]})
        assert doc == {"insufficient_data": True, "message": INSUFFICIENT_DATA_MESSAGE}


# ---------------------------------------------------------------------------
# Recommended actions
# ---------------------------------------------------------------------------

class TestRecommendedActions:
    def test_mixed_strings_and_objects(self):
        doc = _doc("nextSteps", SECTION_OUTPUTS["nextSteps"])
        assert doc["recommendedActions"] == [
            {
                "description": "Send a WMS integration case study",
                "rationale": "Addresses top pain",
                "priority": "High",
            },
            {"description": "Book a technical deep-dive", "priority": "Medium"},
        ]

    def test_action_without_description_dropped(self):
        raw = {"recommendedActions": [{"priority": "High"}, "Send pricing"]}
        assert _doc("nextSteps", raw)["recommendedActions"] == [
            {"description": "Send pricing", "priority": "Medium"},
        ]


# ---------------------------------------------------------------------------
# Dos and don'ts
# ---------------------------------------------------------------------------

class TestDosDonts:
    def test_list_bucketed_by_prefix(self):
        doc = _doc("interactions", SECTION_OUTPUTS["interactions"])
        assert doc["dosDonts"] == {
            "do": ["Do send an agenda in advance", "Be concise"],
            "dont": ["Don't cold call", "Avoid marketing jargon"],
        }

    def test_do_not_is_a_dont(self):
        doc = _doc("interactions", {"dosDonts": ["Do not send attachments", "Always follow up"]})
        assert doc["dosDonts"] == {"do": ["Always follow up"], "dont": ["Do not send attachments"]}

    def test_object_form(self):
        raw = {"dosDonts": {"do": "- Share a case study\n- Keep it brief", "dont": ["Never overpromise"]}}
        assert _doc("interactions", raw)["dosDonts"] == {
            "do": ["Share a case study", "Keep it brief"],
            "dont": ["Never overpromise"],
        }

    def test_json_array_string(self):
        raw = {"dosDonts": '["Use first names", "Avoid long emails"]'}
        assert _doc("interactions", raw)["dosDonts"] == {
            "do": ["Use first names"],
            "dont": ["Avoid long emails"],
        }

    def test_marker_text(self):
        raw = {"dosDonts": "Do: send the agenda early; keep it short. Don't: cold call"}
        assert _doc("interactions", raw)["dosDonts"] == {
            "do": ["send the agenda early", "keep it short."],
            "dont": ["cold call"],
        }

    def test_unstructured_text_kept_as_text(self):
        raw = {"dosDonts": "Be respectful of their time and come prepared with data."}
        assert _doc("interactions", raw)["dosDonts"] == raw["dosDonts"]

    def test_unstructured_text_truncated(self):
        out = _doc("interactions", {"dosDonts": "Be brief " * 60})["dosDonts"]
        assert isinstance(out, str)
        assert len(out) <= 200

    def test_json_string_outside_interactions(self):
        raw = {"dosDonts": "[\"do use email\", \"don't call weekends\"]"}
        assert _doc("company", raw)["dosDonts"] == {
            "do": ["do use email"],
            "dont": ["don't call weekends"],
        }


# ---------------------------------------------------------------------------
# Insufficient data
# ---------------------------------------------------------------------------

class TestInsufficientData:
    def test_model_flag_with_message(self):
        content = normalize("company", {"insufficient_data": True, "message": "No industry information"})
        assert isinstance(content, InsufficientData)
        assert content.message == "No industry information"

    def test_model_flag_as_string(self):
        content = normalize("company", {"insufficient_data": "true", "description": "ignored"})
        assert isinstance(content, InsufficientData)

    def test_model_flag_without_message_gets_default(self):
        assert _doc("news", {"insufficient_data": True}) == {
            "insufficient_data": True,
            "message": INSUFFICIENT_DATA_MESSAGE,
        }

    def test_empty_fields_are_insufficient(self):
        content = normalize("overview", {"summary": "  ", "keyPoints": [], "insufficient_data": False})
        assert isinstance(content, InsufficientData)

    @pytest.mark.parametrize(
        "raw",
        [None, 42, "definitely not json", ["a", "b"], {"unknownField": "x"}, "{broken json"],
    )
    def test_garbage_never_raises(self, raw):
        assert isinstance(normalize("overview", raw), InsufficientData)

    def test_unknown_section(self):
        assert isinstance(normalize("strategicBrief", {"summary": "x"}), InsufficientData)


# ---------------------------------------------------------------------------
# Shape handling and metadata
# ---------------------------------------------------------------------------

class TestPayloadShapes:
    def test_fenced_json_string_payload(self):
        doc = _doc("news", SECTION_OUTPUTS["news"])
        assert doc["relevantIndustryTrends"] == [
            "Labour shortages drive automation",
            "Rise of robots-as-a-service",
        ]
        assert doc["insufficient_data"] is False

    def test_snake_case_keys_accepted(self):
        doc = _doc("meeting", {"key_questions": ["Who owns the budget?"]})
        assert doc["keyQuestions"] == ["Who owns the budget?"]

    def test_batch_wrapped_payload_unwrapped(self):
        doc = _doc("overview", {"overview": {"summary": "Jane leads engineering."}})
        assert doc["summary"] == "Jane leads engineering."

    def test_competitors_field_not_mistaken_for_wrapper(self):
        doc = _doc("competitors", {"competitors": {"0": "Rival A", "1": "Rival B"}})
        assert doc["insufficient_data"] is False
        assert doc["competitors"] == ["Rival A", "Rival B"]

    def test_single_competitor_record_not_mistaken_for_wrapper(self):
        doc = _doc("competitors", {"competitors": {"name": "Rival A", "strength": "price"}})
        assert doc["competitors"] == [{"name": "Rival A", "strength": "price"}]

    def test_wrapped_competitors_section_still_unwrapped(self):
        raw = {"competitors": {"competitors": ["Rival A"], "marketDynamics": "Consolidating."}}
        doc = _doc("competitors", raw)
        assert doc["competitors"] == ["Rival A"]
        assert doc["marketDynamics"] == "Consolidating."

    def test_general_insight_flag(self):
        assert _doc("company", SECTION_OUTPUTS["company"])["isGeneralInsight"] is True
        assert "isGeneralInsight" not in _doc("overview", SECTION_OUTPUTS["overview"])

    def test_populated_result_type(self):
        content = normalize("overview", SECTION_OUTPUTS["overview"])
        assert isinstance(content, PopulatedContent)
        assert content.key_points == [
            "VP-level decision maker",
            "Owns the robotics platform roadmap",
            "Mid-size company",
        ]


class TestIdempotence:
    """normalize(normalize(x)) == normalize(x) for every section."""

    @pytest.mark.parametrize("section", SECTIONS)
    def test_fixture_outputs(self, section):
        first = _doc(section, SECTION_OUTPUTS[section])
        assert _doc(section, first) == first

    @pytest.mark.parametrize(
        "section, raw",
        [
            ("overview", {"summary": "word " * 80, "keyPoints": "1. A 2. B 3. C 4. D"}),
            ("interactions", {"dosDonts": "Do: x. Don't: y"}),
            ("interactions", {"dosDonts": "Plain guidance " * 30}),
            ("company", {"insufficient_data": True, "message": "m" * 300}),
        ],
    )
    def test_edge_inputs(self, section, raw):
        first = _doc(section, raw)
        assert _doc(section, first) == first


# ---------------------------------------------------------------------------
# Lenient JSON
# ---------------------------------------------------------------------------

class TestExtractJson:
    def test_plain(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced(self):
        assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_embedded_in_prose(self):
        assert extract_json('Sure! Here it is: {"a": {"b": 2}} Hope that helps.') == {"a": {"b": 2}}

    def test_nothing_parseable(self):
        with pytest.raises(ParseError):
            extract_json("no braces here")

    def test_empty(self):
        with pytest.raises(ParseError):
            extract_json("   ")
