"""
Shape validation for parsed model output.

Items that fail validation are dropped one by one and counted; a batch is
never rejected as a whole.
"""
from __future__ import annotations

import re
from typing import Any, List, NamedTuple, Type

import structlog
from pydantic import BaseModel, ValidationError

from studyguide.schemas import (
    Concept,
    IdentificationItem,
    MultipleChoiceItem,
    Section,
    TrueFalseItem,
)
from studyguide.services.concepts import MAX_CONCEPTS, count_occurrences

logger = structlog.get_logger(__name__)

WRAPPER_KEYS = ("items", "questions", "sections", "concepts", "data", "results")

BULLET_MARKER_RE = re.compile(r"^BULLET\s+", re.IGNORECASE)
NUMBER_MARKER_RE = re.compile(r"^NUM(\d+)\.\s+", re.IGNORECASE)
ARROW_MARKER_RE = re.compile(r"^ARROW\s+", re.IGNORECASE)

AI_CONFIDENCE_START = 0.95
AI_CONFIDENCE_STEP = 0.02
AI_CONFIDENCE_FLOOR = 0.5

QUIZ_MODELS = {
    "trueFalse": TrueFalseItem,
    "multipleChoice": MultipleChoiceItem,
    "identification": IdentificationItem,
}


class Validated(NamedTuple):
    items: List[Any]
    rejected: int


def unwrap_items(value: Any) -> List[Any]:
    """Accept a bare array or an object wrapping one."""
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        for key in WRAPPER_KEYS:
            if isinstance(value.get(key), list):
                return value[key]
        lists = [v for v in value.values() if isinstance(v, list)]
        if len(lists) == 1:
            return lists[0]
        # A single item returned without the surrounding array
        return [value]
    return []


def map_markers(line: str) -> str:
    line = BULLET_MARKER_RE.sub("• ", line)
    line = NUMBER_MARKER_RE.sub(r"\1. ", line)
    return ARROW_MARKER_RE.sub("> ", line)


def _validate_all(model: Type[BaseModel], raw_items: List[Any], context: str) -> Validated:
    items = []
    rejected = 0
    for index, raw in enumerate(raw_items):
        try:
            items.append(model.model_validate(raw))
        except ValidationError as e:
            rejected += 1
            logger.warning("item_rejected", context=context, index=index, errors=e.error_count())
    return Validated(items, rejected)


def validate_sections(value: Any) -> Validated:
    prepared = []
    for raw in unwrap_items(value):
        if not isinstance(raw, dict):
            prepared.append(raw)
            continue
        lines = raw.get("content")
        if isinstance(lines, str):
            lines = lines.split("\n")
        if isinstance(lines, list):
            lines = [map_markers(line.strip()) for line in lines if isinstance(line, str) and line.strip()]
        level = raw.get("level", 1)
        prepared.append({
            "title": raw.get("title"),
            "level": level if level in (1, 2) else 1,
            "content": lines,
            "rawContent": " ".join(lines) if isinstance(lines, list) else "",
        })
    return _validate_all(Section, prepared, "sections")


def validate_concepts(value: Any, text: str) -> Validated:
    """Unique, ranked ``ai-extracted`` concepts with real occurrence counts."""
    concepts = []
    seen = set()
    rejected = 0
    for raw in unwrap_items(value):
        if not isinstance(raw, dict) or not isinstance(raw.get("term"), str):
            rejected += 1
            continue
        term = raw["term"].strip()
        if term.lower() in seen:
            continue
        definition = raw.get("definition")
        try:
            concept = Concept(
                term=term,
                definition=definition.strip() if isinstance(definition, str) else "",
                confidence=round(max(AI_CONFIDENCE_START - AI_CONFIDENCE_STEP * len(concepts), AI_CONFIDENCE_FLOOR), 2),
                type="ai-extracted",
                occurrences=count_occurrences(term, text) if term else 0,
            )
        except ValidationError:
            rejected += 1
            continue
        seen.add(term.lower())
        concepts.append(concept)
        if len(concepts) == MAX_CONCEPTS:
            break

    if rejected:
        logger.warning("item_rejected", context="concepts", count=rejected)
    return Validated(concepts, rejected)


def _repair_hint(item: IdentificationItem) -> IdentificationItem:
    if item.hint and item.answer.lower() not in item.hint.lower():
        return item
    return item.model_copy(update={"hint": f'Starts with "{item.answer[0]}"'})


def validate_quiz_items(quiz_type: str, value: Any, context: str = "quiz") -> Validated:
    result = _validate_all(QUIZ_MODELS[quiz_type], unwrap_items(value), context)
    if quiz_type == "identification":
        return Validated([_repair_hint(item) for item in result.items], result.rejected)
    return result
