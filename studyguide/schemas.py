"""
Pydantic schemas shared by the generation pipeline and the HTTP layer.

Field names are snake_case in Python and serialize to the camelCase keys
the stored reviewer/quiz JSON uses (``rawContent``, ``correctIndex`` ...).
Always dump with ``by_alias=True`` (see ``CamelModel.to_payload``).
"""
from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


DIFFICULTIES = ("easy", "medium", "hard")
QUIZ_TYPES = ("trueFalse", "multipleChoice", "identification", "matching")

# Upper bounds per (type, difficulty) cell
QUESTION_TARGETS = {"easy": 15, "medium": 12, "hard": 10}
MATCH_TARGETS = {"easy": 10, "medium": 8, "hard": 6}

ConceptType = Literal["definition", "frequent", "ai-extracted"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


def _require_text(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


# ─── Reviewer ─────────────────────────────────────────────────────────────────

class Section(CamelModel):
    title: str
    level: Literal[1, 2] = 1
    content: List[str] = Field(..., min_length=1)
    raw_content: str = ""

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        return _require_text(v)


class Concept(CamelModel):
    """A glossary entry. Immutable once extracted."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    term: str
    definition: str = ""
    confidence: float = Field(..., ge=0.0, le=1.0)
    type: ConceptType
    occurrences: int = Field(0, ge=0)

    @field_validator("term")
    @classmethod
    def term_not_blank(cls, v: str) -> str:
        return _require_text(v)


class ReviewerMetadata(CamelModel):
    word_count: int
    sentence_count: int
    paragraph_count: int
    estimated_read_time: int
    generated_at: str
    processing_version: str


class Reviewer(CamelModel):
    title: str
    sections: List[Section] = Field(default_factory=list)
    concepts: List[Concept] = Field(default_factory=list)
    metadata: ReviewerMetadata
    original_text: str = ""


# ─── Quiz items ───────────────────────────────────────────────────────────────

class QuizItem(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True
    )


class TrueFalseItem(QuizItem):
    question: str
    answer: bool
    explanation: str = ""

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, v: str) -> str:
        return _require_text(v)


class MultipleChoiceItem(QuizItem):
    question: str
    options: List[str] = Field(..., min_length=4, max_length=4)
    correct_index: int = Field(..., ge=0, le=3)
    explanation: str = ""

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, v: str) -> str:
        return _require_text(v)

    @field_validator("options")
    @classmethod
    def options_not_blank(cls, v: List[str]) -> List[str]:
        return [_require_text(option) for option in v]


class IdentificationItem(QuizItem):
    question: str
    answer: str
    hint: str = ""

    @field_validator("question", "answer")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _require_text(v)


class MatchPair(QuizItem):
    left: str
    right: str

    @field_validator("left", "right")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _require_text(v)


class MatchSet(CamelModel):
    pairs: List[MatchPair] = Field(default_factory=list)
    instruction: str = ""


def _empty_cells() -> Dict[str, list]:
    return {difficulty: [] for difficulty in DIFFICULTIES}


def _empty_match_cells() -> Dict[str, MatchSet]:
    return {difficulty: MatchSet() for difficulty in DIFFICULTIES}


class QuestionSet(CamelModel):
    """quizType -> difficulty -> items"""
    true_false: Dict[str, List[TrueFalseItem]] = Field(default_factory=_empty_cells)
    multiple_choice: Dict[str, List[MultipleChoiceItem]] = Field(default_factory=_empty_cells)
    identification: Dict[str, List[IdentificationItem]] = Field(default_factory=_empty_cells)
    matching: Dict[str, MatchSet] = Field(default_factory=_empty_match_cells)

    def cell(self, quiz_type: str, difficulty: str):
        by_type = {
            "trueFalse": self.true_false,
            "multipleChoice": self.multiple_choice,
            "identification": self.identification,
            "matching": self.matching,
        }
        return by_type[quiz_type][difficulty]

    def set_cell(self, quiz_type: str, difficulty: str, items) -> None:
        by_type = {
            "trueFalse": self.true_false,
            "multipleChoice": self.multiple_choice,
            "identification": self.identification,
            "matching": self.matching,
        }
        by_type[quiz_type][difficulty] = items

    def count(self, quiz_type: str, difficulty: str) -> int:
        cell = self.cell(quiz_type, difficulty)
        return len(cell.pairs) if quiz_type == "matching" else len(cell)

    def total(self) -> int:
        return sum(self.count(t, d) for t in QUIZ_TYPES for d in DIFFICULTIES)


# ─── Generation report ────────────────────────────────────────────────────────

class ParseFailure(CamelModel):
    context: str
    kind: str
    message: str


class GenerationReport(CamelModel):
    mode: Literal["ai", "heuristic"] = "heuristic"
    thin_source_material: bool = False
    fallback_cells: List[str] = Field(default_factory=list)
    parse_failures: List[ParseFailure] = Field(default_factory=list)
    rejected_items: int = 0


# ─── HTTP request bodies ──────────────────────────────────────────────────────

class ReviewerRequest(CamelModel):
    text: str = ""
    title: str = "Untitled Reviewer"
    use_ai: bool = True


class QuestionsRequest(CamelModel):
    text: str = ""
    concepts: List[Concept] = Field(default_factory=list)
    sections: List[Section] = Field(default_factory=list)
    reviewer_id: Optional[int] = None
    use_ai: bool = True


class IdentificationCheckRequest(CamelModel):
    correct: str
    answer: str = ""
