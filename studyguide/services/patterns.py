"""
Science pattern detection over normalized text.

Every detector is a pure function of the text; ``detect`` simply runs
all four.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import List

from studyguide.services.preprocessor import LIST_MARKER_RE, is_list_item

SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")
LEADING_ARTICLE_RE = re.compile(r"^(the|a|an)\s+", re.IGNORECASE)

# Ordered: the first template whose match passes validation wins
DEFINITION_PATTERNS = [
    re.compile(r"^(?P<term>.{3,50}?)\s+is\s+(?:a|an|the)\s+(?P<definition>.{10,200})", re.IGNORECASE),
    re.compile(r"^(?P<term>.{3,50}?)\s+are\s+(?P<definition>.{10,200})", re.IGNORECASE),
    re.compile(r"^(?P<term>.{3,50}?)\s+means\s+(?P<definition>.{10,200})", re.IGNORECASE),
    re.compile(r"^(?P<term>.{3,50}?)\s+refers?\s+to\s+(?P<definition>.{10,200})", re.IGNORECASE),
    re.compile(r"^(?P<term>.{3,50}?):\s+(?P<definition>.{10,200})"),
]
MAX_TERM_WORDS = 6
MIN_DEFINITION_WORDS = 3

PROCESS_KEYWORDS = (
    "process", "procedure", "method", "steps", "stages",
    "involves", "consists of", "comprises",
)
CLASSIFICATION_KEYWORDS = (
    "types of", "kinds of", "categories", "classified into",
    "divided into", "two main", "three main",
)

COMMON_WORDS = frozenset(w.lower() for w in """
The This That These Those What Which Who When Where Why How Can Will Should
Would Could May Might Must Have Has Had Does Did Are Was Were Been Being
Other Some Many More Most Such Very Also Just Only Each Every Both Few All
Any None One First Last Next Then Now Here There About Into Through During
Before After Above Below
""".split())


@dataclass(frozen=True)
class Definition:
    term: str
    definition: str
    full_text: str


@dataclass(frozen=True)
class Process:
    process: str
    full_text: str


@dataclass(frozen=True)
class Classification:
    category: str
    full_text: str


@dataclass(frozen=True)
class ListBlock:
    items: List[str]
    context: str


@dataclass(frozen=True)
class PatternReport:
    definitions: List[Definition] = field(default_factory=list)
    processes: List[Process] = field(default_factory=list)
    classifications: List[Classification] = field(default_factory=list)
    lists: List[ListBlock] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    def counts(self) -> dict:
        return {
            "definitions": len(self.definitions),
            "processes": len(self.processes),
            "classifications": len(self.classifications),
            "lists": len(self.lists),
        }


def split_sentences(text: str) -> List[str]:
    """Split on sentence punctuation without crossing line boundaries."""
    sentences: List[str] = []
    for line in (text or "").split("\n"):
        line = LIST_MARKER_RE.sub("", line.strip(), count=1)
        if not line:
            continue
        sentences.extend(s.strip() for s in SENTENCE_BOUNDARY_RE.split(line) if s.strip())
    return sentences


def _match_definition(sentence: str):
    body = sentence.rstrip(".!? ")
    for pattern in DEFINITION_PATTERNS:
        match = pattern.match(body)
        if not match:
            continue
        term = LEADING_ARTICLE_RE.sub("", match.group("term").strip()).strip(" ,;")
        definition = match.group("definition").strip()
        if term and len(term.split()) <= MAX_TERM_WORDS and len(definition.split()) >= MIN_DEFINITION_WORDS:
            return Definition(term=term, definition=definition, full_text=sentence)
    return None


def find_definitions(text: str) -> List[Definition]:
    definitions = []
    for sentence in split_sentences(text):
        found = _match_definition(sentence)
        if found:
            definitions.append(found)
    return definitions


def find_processes(text: str) -> List[Process]:
    return [
        Process(process=s[:100], full_text=s)
        for s in split_sentences(text)
        if any(keyword in s.lower() for keyword in PROCESS_KEYWORDS)
    ]


def find_classifications(text: str) -> List[Classification]:
    return [
        Classification(category=s[:100], full_text=s)
        for s in split_sentences(text)
        if any(keyword in s.lower() for keyword in CLASSIFICATION_KEYWORDS)
    ]


def find_lists(text: str) -> List[ListBlock]:
    """Runs of two or more list lines, with the nearest preceding text line."""
    lists: List[ListBlock] = []
    current: List[str] = []
    context = ""
    last_text = ""

    for line in (text or "").split("\n"):
        stripped = line.strip()
        if is_list_item(stripped):
            if not current:
                context = last_text
            current.append(LIST_MARKER_RE.sub("", stripped, count=1))
            continue
        if len(current) >= 2:
            lists.append(ListBlock(items=current, context=context))
        current = []
        if stripped:
            last_text = stripped

    if len(current) >= 2:
        lists.append(ListBlock(items=current, context=context))
    return lists


def detect(text: str) -> PatternReport:
    return PatternReport(
        definitions=find_definitions(text),
        processes=find_processes(text),
        classifications=find_classifications(text),
        lists=find_lists(text),
    )
