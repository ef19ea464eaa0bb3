# backend/leadreport/services/normalizer.py
"""
Normalisation of untrusted LLM section output into ``SectionContent``.

The same model, asked for the same section, returns list fields as arrays,
arrays of objects, bulleted strings, plain sentences, or objects keyed
``"0"``, ``"1"``, … ; ``dosDonts`` shows up in four different shapes.
``normalize`` absorbs all of that and applies the storage policy:

- text budgets and list caps per section (``SECTION_RULES``)
- advisory fields only in ``nextSteps`` / ``interactions``
- anything left empty degrades to ``InsufficientData``

It is pure and deterministic, and running it on its own output is a no-op.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic.alias_generators import to_camel

from ..schemas.section_content import (
    InsufficientData,
    PopulatedContent,
    SectionContent,
)
from .errors import ParseError

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Section rules
# -----------------------------------------------------------------------------

TEXT = "text"
STRINGS = "strings"
RECORDS = "records"
ACTIONS = "actions"
DOS_DONTS = "dos_donts"


@dataclass(frozen=True)
class FieldRule:
    kind: str
    # characters for text fields, items for list fields
    limit: int


_COMMON_RULES = {
    "summary": FieldRule(TEXT, 200),
    "keyPoints": FieldRule(STRINGS, 3),
    "dosDonts": FieldRule(DOS_DONTS, 200),
}

SECTION_RULES: dict[str, dict[str, FieldRule]] = {
    "overview": {**_COMMON_RULES},
    "company": {
        **_COMMON_RULES,
        "description": FieldRule(TEXT, 200),
        "marketPosition": FieldRule(TEXT, 150),
        "challenges": FieldRule(STRINGS, 3),
    },
    "meeting": {
        **_COMMON_RULES,
        "suggestedAgenda": FieldRule(TEXT, 200),
        "keyQuestions": FieldRule(STRINGS, 3),
        "preparationTips": FieldRule(TEXT, 200),
    },
    "interactions": {
        **_COMMON_RULES,
        "communicationPreferences": FieldRule(TEXT, 150),
        "personalizationTips": FieldRule(STRINGS, 3),
        "dosDonts": FieldRule(DOS_DONTS, 200),
        "recommendations": FieldRule(STRINGS, 2),
    },
    "competitors": {
        **_COMMON_RULES,
        "mainCompetitors": FieldRule(RECORDS, 3),
        "competitors": FieldRule(RECORDS, 3),
        "competitiveAdvantage": FieldRule(TEXT, 150),
        "marketDynamics": FieldRule(TEXT, 150),
    },
    "techStack": {
        **_COMMON_RULES,
        "currentTechnologies": FieldRule(RECORDS, 3),
        "painPoints": FieldRule(STRINGS, 2),
    },
    "news": {
        **_COMMON_RULES,
        "relevantIndustryTrends": FieldRule(STRINGS, 3),
    },
    "nextSteps": {
        **_COMMON_RULES,
        "recommendedActions": FieldRule(ACTIONS, 2),
        "recommendations": FieldRule(RECORDS, 2),
        "opportunities": FieldRule(STRINGS, 2),
    },
}

# Recommendation-like output is only allowed where the report asks for it.
ADVISORY_FIELDS = frozenset({
    "recommendations",
    "recommendedActions",
    "personalizationTips",
    "opportunities",
    "suggestions",
    "tips",
})
ADVISORY_SECTIONS = frozenset({"nextSteps", "interactions"})

GENERAL_INSIGHT_SECTIONS = frozenset({"company", "competitors", "techStack"})

METADATA_FIELDS = frozenset({
    "insufficient_data",
    "isGeneralInsight",
    "message",
    "error",
    "parseError",
})

_KEY_ALIASES = {
    "insufficientData": "insufficient_data",
    "dosAndDonts": "dosDonts",
    "doDonts": "dosDonts",
}

# -----------------------------------------------------------------------------
# Lenient JSON
# -----------------------------------------------------------------------------

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def extract_json(text: str) -> Any:
    """
    Parse JSON out of model text: plain, ```json fenced, or embedded in prose
    (outermost ``{`` … ``}``). Raises ``ParseError`` when nothing parses.
    """
    raw = (text or "").strip()
    if not raw:
        raise ParseError("Empty completion")

    for candidate in (_FENCE_RE.sub("", raw), raw):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    start = raw.find("{")
    end = raw.rfind("}")
    if start != -1 and end != -1 and end > start:
        try:
            return json.loads(raw[start : end + 1])
        except json.JSONDecodeError:
            pass

    raise ParseError("No JSON object found in completion")


# -----------------------------------------------------------------------------
# List decoding
# -----------------------------------------------------------------------------

# Leading bullets / numbering only. Prose punctuation is never touched.
_MARKER_RE = re.compile(r"^\s*(?:(?:[-–•*◦▪‣]|\d{1,2}[.)])\s+)+")
_SMALL_INT_RE = re.compile(r"\d{1,3}")
_LINE_SPLIT_RE = re.compile(r"[\r\n]+")
_INLINE_NUMBER_SPLIT_RE = re.compile(r"\s+(?=\d{1,2}[.)]\s)")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z0-9\"'])")

Decoder = Callable[[Any], Optional[list]]


def _decode_array(value: Any) -> Optional[list]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return None


def is_numeric_keyed(value: Any) -> bool:
    """True for a non-empty dict whose keys are ALL small integers ("0".."999")."""
    if not isinstance(value, dict) or not value:
        return False
    return all(
        isinstance(k, str) and _SMALL_INT_RE.fullmatch(k.strip()) is not None
        for k in value
    )


def _decode_numeric_keyed(value: Any) -> Optional[list]:
    if not is_numeric_keyed(value):
        return None
    return [value[k] for k in sorted(value, key=lambda k: int(k.strip()))]


def _decode_embedded_json(value: Any) -> Optional[list]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not (text.startswith("[") and text.endswith("]")):
        return None
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, list) else None


def _decode_delimited(value: Any) -> Optional[list]:
    if not isinstance(value, str):
        return None

    lines = [line for line in _LINE_SPLIT_RE.split(value) if line.strip()]
    if len(lines) > 1:
        return lines

    text = value.strip()
    if _MARKER_RE.match(text):
        parts = _INLINE_NUMBER_SPLIT_RE.split(text)
        if len(parts) > 1:
            return parts

    if ";" in text:
        parts = [p for p in text.split(";") if p.strip()]
        if len(parts) > 1:
            return parts

    return None


def _decode_sentences(value: Any) -> Optional[list]:
    if not isinstance(value, str):
        return None
    parts = [p for p in _SENTENCE_SPLIT_RE.split(value.strip()) if p.strip()]
    return parts if len(parts) > 1 else None


def _decode_single(value: Any) -> Optional[list]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float, dict)):
        return [value]
    return None


# Order matters: structural shapes first, text heuristics last.
LIST_DECODERS: tuple[Decoder, ...] = (
    _decode_array,
    _decode_numeric_keyed,
    _decode_embedded_json,
    _decode_delimited,
    _decode_sentences,
    _decode_single,
)


def decode_list(value: Any) -> list:
    for decoder in LIST_DECODERS:
        items = decoder(value)
        if items is not None:
            return items
    return []


# -----------------------------------------------------------------------------
# Item coercion
# -----------------------------------------------------------------------------

_TEXT_KEYS = ("text", "description", "title", "name", "content", "point", "value")


def _clean_item(text: str) -> str:
    collapsed = " ".join(text.split())
    return _MARKER_RE.sub("", collapsed).strip()


def _scalar_text(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        return _clean_item(value) or None
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _item_to_text(item: Any) -> Optional[str]:
    if isinstance(item, dict):
        for key in _TEXT_KEYS:
            text = _scalar_text(item.get(key))
            if text:
                return text
        return None
    return _scalar_text(item)


def _item_to_record(item: Any) -> Optional[str | dict[str, str]]:
    if not isinstance(item, dict):
        return _scalar_text(item)
    record: dict[str, str] = {}
    for key, value in item.items():
        text = _scalar_text(value)
        if isinstance(key, str) and key.strip() and text:
            record[key.strip()] = text
    return record or None


def _item_to_action(item: Any) -> Optional[dict[str, str]]:
    if not isinstance(item, dict):
        text = _scalar_text(item)
        return {"description": text, "priority": "Medium"} if text else None

    description = None
    for key in ("description", "action", "title", "name", "text"):
        description = _scalar_text(item.get(key))
        if description:
            break
    if not description:
        return None

    action = {"description": description}
    rationale = _scalar_text(item.get("rationale") or item.get("reason"))
    if rationale:
        action["rationale"] = rationale
    priority = _scalar_text(item.get("priority"))
    if priority:
        action["priority"] = priority
    return action


def _cap(items: list, limit: int) -> list:
    return items[:limit] if limit else items


def coerce_strings(value: Any, limit: int = 0) -> list[str]:
    items = [t for t in (_item_to_text(i) for i in decode_list(value)) if t]
    return _cap(items, limit)


def coerce_records(value: Any, limit: int = 0) -> list[str | dict[str, str]]:
    items = [r for r in (_item_to_record(i) for i in decode_list(value)) if r]
    return _cap(items, limit)


def coerce_actions(value: Any, limit: int = 0) -> list[dict[str, str]]:
    items = [a for a in (_item_to_action(i) for i in decode_list(value)) if a]
    return _cap(items, limit)


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    cut = text[: limit - 3]
    space = cut.rfind(" ")
    if space > limit // 2:
        cut = cut[:space]
    return cut.rstrip(" ,;:-") + "..."


def coerce_text(value: Any, limit: int) -> Optional[str]:
    if isinstance(value, str):
        text = " ".join(value.split())
    elif isinstance(value, (list, tuple, dict)):
        text = "; ".join(coerce_strings(value))
    else:
        text = _scalar_text(value) or ""
    return truncate(text, limit) if text else None


# -----------------------------------------------------------------------------
# Dos / don'ts
# -----------------------------------------------------------------------------

_DONT_PREFIXES = ("don't ", "don’t ", "dont ", "do not ", "avoid ", "never ")
_DO_KEYS = frozenset({"do", "dos", "do's"})
_DONT_KEYS = frozenset({"dont", "donts", "don't", "don'ts", "don’t", "don’ts", "do not"})

_DO_THEN_DONT_RE = re.compile(
    r"\bdo'?s?\s*:\s*(?P<do>.*?)\s*\bdon[’']?t'?s?\s*:\s*(?P<dont>.*)",
    re.IGNORECASE | re.DOTALL,
)
_DONT_THEN_DO_RE = re.compile(
    r"\bdon[’']?t'?s?\s*:\s*(?P<dont>.*?)\s*\bdo'?s?\s*:\s*(?P<do>.*)",
    re.IGNORECASE | re.DOTALL,
)


def _bucket(item: str) -> str:
    # "do ", "always ", "use " and anything unmatched land in the do-bucket;
    # don't-prefixes are checked first because "do not …" starts with "do ".
    return "dont" if item.lower().startswith(_DONT_PREFIXES) else "do"


def _split_dos_donts(items: list) -> dict[str, list[str]]:
    buckets: dict[str, list[str]] = {"do": [], "dont": []}
    for item in items:
        text = _item_to_text(item)
        if text:
            buckets[_bucket(text)].append(text)
    return buckets


def coerce_dos_donts(value: Any, limit: int, _depth: int = 0) -> Optional[dict | str]:
    buckets: Optional[dict[str, list[str]]] = None

    if isinstance(value, dict) and not is_numeric_keyed(value):
        dos: list[str] = []
        donts: list[str] = []
        for key, entries in value.items():
            k = str(key).strip().lower()
            if k in _DO_KEYS:
                dos.extend(coerce_strings(entries))
            elif k in _DONT_KEYS:
                donts.extend(coerce_strings(entries))
        buckets = {"do": dos, "dont": donts}
    elif isinstance(value, (list, tuple, dict)):
        buckets = _split_dos_donts(decode_list(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if _depth == 0 and text[:1] in ("[", "{"):
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, (list, dict)):
                return coerce_dos_donts(parsed, limit, _depth + 1)
        match = _DO_THEN_DONT_RE.search(text) or _DONT_THEN_DO_RE.search(text)
        if match:
            buckets = {
                "do": coerce_strings(match.group("do")),
                "dont": coerce_strings(match.group("dont")),
            }
        else:
            return coerce_text(text, limit)

    if not buckets or not (buckets["do"] or buckets["dont"]):
        return None
    return buckets


_COERCERS: dict[str, Callable[[Any, int], Any]] = {
    TEXT: coerce_text,
    STRINGS: coerce_strings,
    RECORDS: coerce_records,
    ACTIONS: coerce_actions,
    DOS_DONTS: coerce_dos_donts,
}

# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------


def _canonical_key(key: Any) -> str:
    if not isinstance(key, str):
        return ""
    key = key.strip()
    if key in _KEY_ALIASES:
        return _KEY_ALIASES[key]
    if "_" in key and key != "insufficient_data":
        key = to_camel(key)
    return _KEY_ALIASES.get(key, key)


def _as_payload(section: str, raw: Any) -> Optional[dict]:
    if isinstance(raw, str):
        try:
            raw = extract_json(raw)
        except ParseError:
            return None
    if not isinstance(raw, dict):
        return None
    # batch-shaped output: {"overview": {...}}
    wrapped = raw.get(section)
    if len(raw) == 1 and _is_section_body(section, wrapped):
        return wrapped
    return raw


def _is_section_body(section: str, value: Any) -> bool:
    # "competitors" is both a section and one of its fields; a list-like
    # object or a lone record under that key is the field, not a wrapper.
    if not isinstance(value, dict) or is_numeric_keyed(value):
        return False
    known = set(SECTION_RULES.get(section, {})) | METADATA_FIELDS
    return any(_canonical_key(k) in known for k in value)


def _flagged_insufficient(payload: dict) -> bool:
    flag = payload.get("insufficient_data", payload.get("insufficientData"))
    if isinstance(flag, str):
        return flag.strip().lower() == "true"
    return flag is True


def _normalize(section: str, raw: Any) -> SectionContent:
    rules = SECTION_RULES.get(section)
    payload = _as_payload(section, raw)
    if rules is None or payload is None:
        return InsufficientData()

    if _flagged_insufficient(payload):
        message = coerce_text(payload.get("message"), 200)
        return InsufficientData(message=message) if message else InsufficientData()

    fields: dict[str, Any] = {}
    for raw_key, value in payload.items():
        key = _canonical_key(raw_key)
        if key in METADATA_FIELDS or key in fields:
            continue
        if key in ADVISORY_FIELDS and section not in ADVISORY_SECTIONS:
            continue
        rule = rules.get(key)
        if rule is None:
            continue
        coerced = _COERCERS[rule.kind](value, rule.limit)
        if coerced:
            fields[key] = coerced

    if not fields:
        return InsufficientData()

    if section in GENERAL_INSIGHT_SECTIONS:
        fields["isGeneralInsight"] = True
    return PopulatedContent.model_validate(fields)


def normalize(section: str, raw: Any) -> SectionContent:
    """
    Convert raw generator output for ``section`` into canonical content.

    Never raises: anything that cannot be made sense of becomes
    ``InsufficientData``.
    """
    try:
        return _normalize(section, raw)
    except Exception:
        logger.exception(
            "Section normalisation failed; storing insufficient_data",
            extra={"section": section},
        )
        return InsufficientData()
