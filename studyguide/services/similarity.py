"""
Typo-tolerant grading for identification answers.
"""
from __future__ import annotations

import re

from rapidfuzz.distance import Levenshtein

ARTICLE_RE = re.compile(r"^(the|a|an)\s+", re.IGNORECASE)
PASS_THRESHOLD = 0.8


def similarity(a: str, b: str) -> float:
    """1 - edit distance / length of the longer string; 1.0 for two empty strings."""
    return Levenshtein.normalized_similarity(a, b)


def check_identification_answer(correct: str, answer: str) -> bool:
    correct = (correct or "").strip().lower()
    answer = (answer or "").strip().lower()
    if not answer:
        return False
    if correct == answer:
        return True
    if ARTICLE_RE.sub("", correct) == ARTICLE_RE.sub("", answer):
        return True
    return similarity(correct, answer) >= PASS_THRESHOLD
