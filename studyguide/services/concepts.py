"""
Glossary extraction from explicit definitions and capitalized-term frequency.
"""
from __future__ import annotations

import re
from collections import Counter
from typing import Dict, Iterable, List

import structlog

from studyguide.schemas import Concept
from studyguide.services.analyzer import ContentAnalysis
from studyguide.services.patterns import COMMON_WORDS

logger = structlog.get_logger(__name__)

MAX_CONCEPTS = 25
DEFINITION_CONFIDENCE = 0.95
FREQUENT_CONFIDENCE_CAP = 0.80
MIN_FREQUENCY = 3
MAX_TERM_WORDS = 5
DEFINITION_SNIPPET = 150

CAPITALIZED_PHRASE_RE = re.compile(r"\b([A-Z][a-z]{2,}(?:[ \t]+[A-Z][a-z]{2,}){0,2})\b")
REFERENCE_VERB_RE = re.compile(r"\b(is|are|means|refers)\b")
ARTICLE_START_RE = re.compile(r"^(the|a|an)\s", re.IGNORECASE)
NOUN_SUFFIX_RE = re.compile(r"(tion|ism|ology|sis|ment)$")

GENERIC_PHRASES = [
    re.compile(r"^(these|those|this|that)\s", re.IGNORECASE),
    re.compile(r"^(some|many|all|most|few|several)\s", re.IGNORECASE),
    re.compile(r"^(for example|in addition|as follows|such as)\b", re.IGNORECASE),
    re.compile(r"^(they|them|their|it|its)$", re.IGNORECASE),
    re.compile(r"^(key|important)\s+(concepts?|features?|points?)$", re.IGNORECASE),
    re.compile(r"^the\s+(process|structure|function|role)\s+of$", re.IGNORECASE),
]


def is_common_word(term: str) -> bool:
    return len(term) < 3 or term.lower() in COMMON_WORDS


def _is_substantive(word: str) -> bool:
    return len(word) >= 4 and (word[0].isupper() or bool(NOUN_SUFFIX_RE.search(word)))


def is_valid_concept_term(term: str) -> bool:
    """Reject OCR artifacts, filler phrases and overlong terms."""
    term = (term or "").strip()
    if is_common_word(term):
        return False

    words = term.split()
    lowered = [w.lower() for w in words]
    if any(a == b for a, b in zip(lowered, lowered[1:])):
        return False
    if any(pattern.search(term) for pattern in GENERIC_PHRASES):
        return False
    if ARTICLE_START_RE.match(term):
        return False
    if len(words) > MAX_TERM_WORDS:
        return False
    if len(words) > 1 and not any(_is_substantive(w) for w in words):
        return False
    return any(ch.isalpha() for ch in term)


def count_occurrences(term: str, text: str) -> int:
    pattern = re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)
    return len(pattern.findall(text))


def find_definition_for(term: str, sentences: Iterable[str]) -> str:
    """First sentence mentioning ``term`` next to a reference verb, or ""."""
    for sentence in sentences:
        if term in sentence and REFERENCE_VERB_RE.search(sentence):
            return sentence[:DEFINITION_SNIPPET]
    return ""


def extract_concepts(analysis: ContentAnalysis) -> List[Concept]:
    """Build the ranked, case-insensitively unique glossary for one text."""
    concepts: Dict[str, Concept] = {}

    for found in analysis.patterns.definitions:
        term = found.term.strip()
        key = term.lower()
        if key in concepts or not is_valid_concept_term(term):
            continue
        concepts[key] = Concept(
            term=term,
            definition=found.definition,
            confidence=DEFINITION_CONFIDENCE,
            type="definition",
            occurrences=count_occurrences(term, analysis.text),
        )

    frequency: Counter = Counter()
    for match in CAPITALIZED_PHRASE_RE.finditer(analysis.text):
        term = match.group(1)
        if term.lower() not in concepts and is_valid_concept_term(term):
            frequency[term] += 1

    for term, count in frequency.items():
        key = term.lower()
        if count < MIN_FREQUENCY or key in concepts:
            continue
        concepts[key] = Concept(
            term=term,
            definition=find_definition_for(term, analysis.sentences),
            confidence=min(count / 8, FREQUENT_CONFIDENCE_CAP),
            type="frequent",
            occurrences=count,
        )

    ranked = sorted(concepts.values(), key=lambda c: c.confidence, reverse=True)[:MAX_CONCEPTS]
    logger.info("concepts_extracted", count=len(ranked))
    return ranked
