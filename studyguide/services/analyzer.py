"""
Heuristic content analysis: normalization, sentence inventory, pattern
detection and section splitting for raw study text.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from studyguide.schemas import Section
from studyguide.services.patterns import COMMON_WORDS, PatternReport, detect, split_sentences
from studyguide.services.preprocessor import (
    LIST_MARKER_RE,
    is_likely_heading,
    normalize,
)

logger = structlog.get_logger(__name__)

PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
TITLE_PHRASE_RE = re.compile(r"[A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)+")
NUMBERED_RE = re.compile(r"^\d+\.\s")

MIN_SENTENCE_CHARS = 15
MIN_SENTENCE_WORDS = 4
LARGE_SECTION_LINES = 20
LARGE_SECTION_PARTS = 4


@dataclass
class ContentAnalysis:
    raw_text: str
    text: str
    lines: List[str] = field(default_factory=list)
    paragraphs: List[str] = field(default_factory=list)
    sentences: List[str] = field(default_factory=list)
    patterns: PatternReport = field(default_factory=PatternReport)

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


def extract_sentences(text: str) -> List[str]:
    return [
        s for s in split_sentences(text)
        if len(s) > MIN_SENTENCE_CHARS and len(s.split()) >= MIN_SENTENCE_WORDS
    ]


def analyze(raw_text: str) -> ContentAnalysis:
    text = normalize(raw_text or "")
    analysis = ContentAnalysis(
        raw_text=raw_text or "",
        text=text,
        lines=[line for line in text.split("\n") if line.strip()],
        paragraphs=[p for p in PARAGRAPH_BREAK_RE.split(text) if p.strip()],
        sentences=extract_sentences(text),
        patterns=detect(text),
    )
    logger.info(
        "content_analyzed",
        words=analysis.word_count,
        paragraphs=len(analysis.paragraphs),
        sentences=len(analysis.sentences),
        **analysis.patterns.counts(),
    )
    return analysis


# -------------------- SECTION SPLITTING --------------------

def clean_heading(text: str) -> str:
    text = re.sub(r"^#+\s*", "", text)
    text = re.sub(r"^\d+[.)]\s*", "", text)
    text = re.sub(r"^[•\-*]\s*", "", text)
    text = re.sub(r"[:.]+$", "", text)
    return text.strip()


def heading_level(line: str) -> int:
    if NUMBERED_RE.match(line) or line == line.upper():
        return 1
    return 2


def intro_line(title: str) -> str:
    return f"Overview of {title}."


def _finish(title: str, level: int, content: List[str]) -> Section:
    if not content:
        content = [intro_line(title)]
    return Section(title=title, level=level, content=content, raw_content=" ".join(content))


def _title_from_sentence(sentence: str) -> Optional[str]:
    for match in TITLE_PHRASE_RE.finditer(sentence):
        words = match.group(0).split()
        while words and words[0].lower() in COMMON_WORDS:
            words.pop(0)
        if len(words) >= 2:
            return " ".join(words)
    return None


def split_large_section(section: Section) -> List[Section]:
    """Re-split one oversized section into roughly equal sentence groups."""
    body = " ".join(LIST_MARKER_RE.sub("", line, count=1) for line in section.content)
    sentences = [s.strip() for s in SENTENCE_SPLIT_RE.split(body) if s.strip()]
    if not sentences:
        return [section]

    per_part = math.ceil(len(sentences) / LARGE_SECTION_PARTS)
    parts = [sentences[i:i + per_part] for i in range(0, len(sentences), per_part)]
    result = []
    for number, part in enumerate(parts, start=1):
        content = [f"{s}." for s in part]
        title = _title_from_sentence(part[0]) or f"Section {number}"
        result.append(Section(title=title, level=2, content=content, raw_content=" ".join(content)))
    return result if len(result) > 1 else [section]


def split_sections(text: str) -> List[Section]:
    """Segment normalized text into titled sections."""
    paragraphs = [p for p in PARAGRAPH_BREAK_RE.split(text or "") if p.strip()]
    sections: List[Section] = []
    title: Optional[str] = None
    level = 1
    content: List[str] = []

    for paragraph in paragraphs:
        lines = [line.strip() for line in paragraph.split("\n") if line.strip()]
        first_line = lines[0]
        next_line = lines[1] if len(lines) > 1 else ""
        heading = is_likely_heading(first_line, "", next_line) and bool(clean_heading(first_line))

        if heading:
            if title is not None:
                sections.append(_finish(title, level, content))
            title = clean_heading(first_line)
            level = heading_level(first_line)
            content = lines[1:]
        elif title is None:
            # Only the first paragraph can precede every heading
            title = "Introduction"
            level = 1
            content = list(lines)
        else:
            content.extend(lines)

    if title is not None:
        sections.append(_finish(title, level, content))

    if len(sections) == 1 and len(sections[0].content) > LARGE_SECTION_LINES:
        sections = split_large_section(sections[0])

    logger.info("sections_detected", count=len(sections))
    return sections
