"""
Heuristic quiz generation from sections and concepts.

Every (quiz type, difficulty) cell is produced independently by
``generate_cell``; ``merge_cell`` combines model-generated items with the
heuristic ones for the same cell without exceeding the tier maximum.
"""
from __future__ import annotations

import math
import random
import re
from typing import Callable, Dict, List, Optional, Sequence

import structlog

from studyguide.schemas import (
    DIFFICULTIES,
    MATCH_TARGETS,
    QUESTION_TARGETS,
    QUIZ_TYPES,
    Concept,
    IdentificationItem,
    MatchPair,
    MatchSet,
    MultipleChoiceItem,
    QuestionSet,
    Section,
    TrueFalseItem,
)
from studyguide.services.patterns import split_sentences

logger = structlog.get_logger(__name__)

TRUE_SHARE = 0.6
FALSE_SHARE = 0.4
FACTUAL_VERB_RE = re.compile(r"\b(is|are|was|were|contains|includes)\b", re.IGNORECASE)
MIN_FACTUAL_WORDS = 8
MAX_FACTUAL_WORDS = 30

MIN_MC_DEFINITION = 20
MIN_ID_DEFINITION = 15
MC_STEMS = {
    "easy": "What is {term}?",
    "medium": "Which best describes {term}?",
    "hard": "Which statement correctly defines {term}?",
}
FILLER_OPTIONS = (
    "A process that performs various biological functions",
    "A structure that stores genetic information",
    "A method used to measure physical quantities",
    "A theory that has since been disproven",
)

BLANK = "_____"
MEDIUM_CHARS = 80
HARD_ID_WORDS = 10
HARD_MATCH_WORDS = 8
MATCH_INSTRUCTIONS = {
    "easy": "Match each term with its definition.",
    "medium": "Match terms with partial definitions.",
    "hard": "Match terms with brief descriptions.",
}

TRUE_EXPLANATION = "This statement is correct based on the material."


def target_for(quiz_type: str, difficulty: str) -> int:
    if quiz_type == "matching":
        return MATCH_TARGETS[difficulty]
    return QUESTION_TARGETS[difficulty]


def _key(item) -> str:
    if isinstance(item, MatchPair):
        return item.left.strip().lower()
    return item.question.strip().lower()


def _unique(items: Sequence, key: Callable = _key) -> List:
    seen = set()
    result = []
    for item in items:
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        result.append(item)
    return result


def shorten(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit].rstrip() + "..."


def first_words(text: str, count: int) -> str:
    words = text.split()
    return text if len(words) <= count else " ".join(words[:count]) + "..."


def whole_term_re(term: str) -> re.Pattern:
    return re.compile(rf"(?<!\w){re.escape(term)}(?!\w)", re.IGNORECASE)


def mask_term(text: str, term: str) -> str:
    """Blank out every word that contains ``term``."""
    pattern = re.compile(rf"\w*{re.escape(term)}\w*", re.IGNORECASE)
    return pattern.sub(BLANK, text)


# -------------------- TRUE / FALSE --------------------

def is_factual(sentence: str) -> bool:
    words = len(sentence.split())
    return (
        bool(FACTUAL_VERB_RE.search(sentence))
        and MIN_FACTUAL_WORDS <= words <= MAX_FACTUAL_WORDS
        and "?" not in sentence
    )


def section_sentences(sections: Sequence[Section]) -> List[str]:
    lines = "\n".join(line for section in sections for line in section.content)
    return [s.lstrip("> ").strip() for s in split_sentences(lines)]


def _factual_for_tier(sentences: List[str], difficulty: str) -> List[str]:
    factual = list(dict.fromkeys(s for s in sentences if is_factual(s)))
    if difficulty == "easy":
        return sorted(factual, key=lambda s: len(s.split()))
    if difficulty == "hard":
        return sorted(factual, key=lambda s: len(s.split()), reverse=True)
    return factual


def false_statement(concept: Concept, partner: Concept) -> Optional[TrueFalseItem]:
    """Attach ``concept``'s definition to ``partner``'s term."""
    definition = concept.definition.strip().rstrip(".")
    if not definition or concept.term.lower() == partner.term.lower():
        return None
    term_re = whole_term_re(concept.term)
    if term_re.search(definition):
        # Callable replacement: terms may hold backslashes
        statement = term_re.sub(lambda _m: partner.term, definition)
    else:
        statement = f"{partner.term} refers to {definition[0].lower()}{definition[1:]}"
    return TrueFalseItem(
        question=f"{statement}.",
        answer=False,
        explanation=f"False. This describes {concept.term}, not {partner.term}.",
    )


def _false_statements(concepts: Sequence[Concept], difficulty: str) -> List[TrueFalseItem]:
    by_type: Dict[str, List[Concept]] = {}
    for concept in concepts:
        if concept.definition.strip():
            by_type.setdefault(concept.type, []).append(concept)

    tier = DIFFICULTIES.index(difficulty)
    items = []
    for pool in by_type.values():
        if len(pool) < 2:
            continue
        shift = 1 + tier % (len(pool) - 1)
        for index, concept in enumerate(pool):
            item = false_statement(concept, pool[(index + shift) % len(pool)])
            if item:
                items.append(item)
    return items


def true_false_cell(
    sections: Sequence[Section], concepts: Sequence[Concept], difficulty: str, rng: random.Random
) -> List[TrueFalseItem]:
    target = QUESTION_TARGETS[difficulty]
    factual = _factual_for_tier(section_sentences(sections), difficulty)[: math.ceil(target * TRUE_SHARE)]
    items = [TrueFalseItem(question=s, answer=True, explanation=TRUE_EXPLANATION) for s in factual]
    items.extend(_false_statements(concepts, difficulty)[: math.floor(target * FALSE_SHARE)])
    items = _unique(items)
    rng.shuffle(items)
    return items[:target]


# -------------------- MULTIPLE CHOICE --------------------

def build_options(concept: Concept, concepts: Sequence[Concept], difficulty: str) -> List[str]:
    correct = concept.definition.strip()
    others = [c for c in concepts if c.term.lower() != concept.term.lower() and c.definition.strip()]
    if difficulty == "hard":
        others.sort(key=lambda c: c.type != concept.type)

    options = [correct]
    seen = {correct.lower()}
    for candidate in [c.definition.strip() for c in others] + list(FILLER_OPTIONS):
        if len(options) == 4:
            break
        if candidate.lower() not in seen:
            seen.add(candidate.lower())
            options.append(candidate)
    return options


def multiple_choice_cell(
    concepts: Sequence[Concept], difficulty: str, rng: random.Random
) -> List[MultipleChoiceItem]:
    target = QUESTION_TARGETS[difficulty]
    eligible = [c for c in concepts if len(c.definition.strip()) >= MIN_MC_DEFINITION][:target]
    items = []
    for concept in eligible:
        correct = concept.definition.strip()
        options = build_options(concept, concepts, difficulty)
        rng.shuffle(options)
        items.append(MultipleChoiceItem(
            question=MC_STEMS[difficulty].format(term=concept.term),
            options=options,
            correct_index=options.index(correct),
            explanation=correct,
        ))
    return _unique(items)


# -------------------- IDENTIFICATION --------------------

def identification_hint(term: str, difficulty: str) -> str:
    if difficulty == "easy":
        return f'Starts with "{term[0]}"'
    if difficulty == "medium":
        letters = sum(ch.isalpha() for ch in term)
        return f"{letters} letters"
    words = len(term.split())
    return f"{words} word" if words == 1 else f"{words} words"


def identification_question(definition: str, term: str, difficulty: str) -> str:
    text = mask_term(definition.strip(), term)
    if difficulty == "medium":
        return shorten(text, MEDIUM_CHARS)
    if difficulty == "hard":
        return first_words(text, HARD_ID_WORDS)
    return text


def identification_cell(concepts: Sequence[Concept], difficulty: str) -> List[IdentificationItem]:
    target = QUESTION_TARGETS[difficulty]
    items = []
    for concept in concepts:
        if len(concept.definition.strip()) <= MIN_ID_DEFINITION:
            continue
        question = identification_question(concept.definition, concept.term, difficulty)
        if not re.search(r"[A-Za-z]", question.replace(BLANK, "")):
            continue
        items.append(IdentificationItem(
            question=question,
            answer=concept.term,
            hint=identification_hint(concept.term, difficulty),
        ))
    return _unique(items)[:target]


# -------------------- MATCHING --------------------

def matching_definition(definition: str, difficulty: str) -> str:
    definition = definition.strip()
    if difficulty == "medium":
        return definition[:MEDIUM_CHARS].rstrip()
    if difficulty == "hard":
        return " ".join(definition.split()[:HARD_MATCH_WORDS])
    return definition


def matching_cell(concepts: Sequence[Concept], difficulty: str, rng: random.Random) -> MatchSet:
    target = MATCH_TARGETS[difficulty]
    pairs = [
        MatchPair(left=c.term, right=matching_definition(c.definition, difficulty))
        for c in concepts if c.definition.strip()
    ]
    pairs = _unique(pairs)[:target]
    rng.shuffle(pairs)
    return MatchSet(pairs=pairs, instruction=MATCH_INSTRUCTIONS[difficulty])


# -------------------- ASSEMBLY --------------------

def generate_cell(
    quiz_type: str,
    difficulty: str,
    sections: Sequence[Section],
    concepts: Sequence[Concept],
    rng: Optional[random.Random] = None,
):
    rng = rng or random.Random()
    if quiz_type == "trueFalse":
        return true_false_cell(sections, concepts, difficulty, rng)
    if quiz_type == "multipleChoice":
        return multiple_choice_cell(concepts, difficulty, rng)
    if quiz_type == "identification":
        return identification_cell(concepts, difficulty)
    if quiz_type == "matching":
        return matching_cell(concepts, difficulty, rng)
    raise ValueError(f"Unknown quiz type: {quiz_type}")


def generate_questions(
    sections: Sequence[Section],
    concepts: Sequence[Concept],
    rng: Optional[random.Random] = None,
) -> QuestionSet:
    """Heuristic question set for every quiz type and difficulty."""
    rng = rng or random.Random()
    questions = QuestionSet()
    for quiz_type in QUIZ_TYPES:
        for difficulty in DIFFICULTIES:
            questions.set_cell(quiz_type, difficulty, generate_cell(quiz_type, difficulty, sections, concepts, rng))

    logger.info(
        "questions_generated",
        **{t: sum(questions.count(t, d) for d in DIFFICULTIES) for t in QUIZ_TYPES},
    )
    return questions


def merge_cell(quiz_type: str, difficulty: str, primary: Sequence, heuristic: Sequence) -> List:
    """Model items first, then unseen heuristic items, capped at the tier maximum."""
    return _unique(list(primary) + list(heuristic))[: target_for(quiz_type, difficulty)]
