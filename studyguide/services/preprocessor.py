"""
Text preprocessing for pasted, uploaded and OCR'd study material.

``preprocess`` repairs extraction artifacts and restores paragraph,
heading and list structure. It is pure and idempotent: the single pass is
repeated until the text stops changing, so running it twice never changes
the result. ``clean`` is a lighter punctuation/spacing pass applied after
preprocessing; ``normalize`` runs both.
"""
from __future__ import annotations

import re
from typing import List

import structlog

logger = structlog.get_logger(__name__)

MAX_PASSES = 10

# -------------------- CHARACTER FILTER --------------------

# Standard punctuation plus the scientific notation that must survive OCR cleanup
ALLOWED_SYMBOLS = (
    ".,!?;:()[]{}'\"/\\-–—+=%^°²³*×÷≈≠≤≥<>&"
    "→←↔↑↓∞∑∏∫∂√"
    "πΔΣαβγδεθλμσφψωΩ"
    "•"
)
DISALLOWED_CHAR_RE = re.compile(r"[^\w\s" + re.escape(ALLOWED_SYMBOLS) + r"]")
OTHER_WHITESPACE_RE = re.compile(r"[^\S\n]")
HYPHEN_BREAK_RE = re.compile(r"(\w)-[ \t]*\n[ \t]*(\w)")
PAGE_NUMBER_RE = re.compile(r"^[ \t]*\d+[ \t]*$", re.MULTILINE)

# -------------------- STRUCTURE --------------------

BULLET = "• "
LIST_MARKER_RE = re.compile(r"^(?:[•\-*]|\d+[.)])\s+")
BULLET_MARKER_RE = re.compile(r"^[•\-*]\s+")
NUMBERED_HEADING_RE = re.compile(r"^\d+\.\s+[A-Z]")
TRAILING_PUNCTUATION = tuple(".!?;,")
SENTENCE_END = tuple(".!?")

_TERM = r"[A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)*"
DEFINITION_RUN_RE = re.compile(rf"({_TERM}):[ \t]+([^:]+?)(?=[ \t]+{_TERM}:|$)")
MIN_RUN_DEFINITION_CHARS = 10

MULTI_SPACE_RE = re.compile(r"[ \t]{2,}")
EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")

# -------------------- CLEANER --------------------

LONG_ELLIPSIS_RE = re.compile(r"\.{4,}")
REPEATED_MARK_RE = re.compile(r"([;:,'\"\-_])\1{2,}")
MIXED_MARKS_RE = re.compile(r"[;:,'\"\-_]{3,}")
SPACE_BEFORE_PUNCT_RE = re.compile(r"[ \t]+([.,!?;:])")
MISSING_SPACE_RE = re.compile(r"([,!?;:])([A-Za-z])")
DOUBLED_MARK_RE = re.compile(r"([!?,;:])\1+")
DOUBLE_PERIOD_RE = re.compile(r"(?<!\.)\.\.(?!\.)")


def is_list_item(line: str) -> bool:
    return bool(LIST_MARKER_RE.match((line or "").strip()))


def is_likely_heading(line: str, prev_line: str = "", next_line: str = "") -> bool:
    """Heuristic heading test for a single line and its neighbours.

    A heading is an ALL-CAPS short line, a ``N. Title`` line that is not part
    of a numbered list, or a mostly capitalized line with no trailing
    punctuation next to a blank line.
    """
    line = (line or "").strip()
    if not line or len(line) > 100:
        return False
    if BULLET_MARKER_RE.match(line):
        return False
    if not any(ch.isalpha() for ch in line):
        return False

    words = line.split()
    if len(words) > 12:
        return False
    unpunctuated = not line.endswith(TRAILING_PUNCTUATION)

    if NUMBERED_HEADING_RE.match(line):
        return (
            len(words) <= 8
            and unpunctuated
            and not is_list_item(prev_line)
            and not is_list_item(next_line)
        )

    if line == line.upper() and len(words) <= 10 and unpunctuated:
        return True

    if len(words) < 2 or not unpunctuated:
        return False
    capitalized = sum(1 for w in words if w[0].isupper())
    if capitalized < len(words) * 0.7:
        return False
    prev_blank = not (prev_line or "").strip()
    next_blank = not (next_line or "").strip()
    return prev_blank or next_blank


def _definition_runs(line: str) -> List[re.Match]:
    matches = list(DEFINITION_RUN_RE.finditer(line))
    if len(matches) < 2 or matches[0].start() != 0 or matches[-1].end() != len(line):
        return []
    for current, following in zip(matches, matches[1:]):
        if line[current.end():following.start()].strip():
            return []
    if any(len(m.group(2).strip()) < MIN_RUN_DEFINITION_CHARS for m in matches):
        return []
    return matches


def has_multiple_definitions(line: str) -> bool:
    """True for run-on ``Term: definition Term: definition`` lines."""
    return bool(_definition_runs(line.strip()))


def split_definitions(line: str) -> List[str]:
    line = line.strip()
    runs = _definition_runs(line)
    if not runs:
        return [line]
    return [f"{m.group(1).strip()}: {m.group(2).strip()}" for m in runs]


def fix_extraction_issues(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = DISALLOWED_CHAR_RE.sub(" ", text)
    text = OTHER_WHITESPACE_RE.sub(" ", text)
    text = HYPHEN_BREAK_RE.sub(r"\1\2", text)
    text = PAGE_NUMBER_RE.sub("", text)
    return text


def restore_paragraph_structure(text: str) -> str:
    lines = text.split("\n")
    out: List[str] = []
    buffer: List[str] = []

    def flush():
        if not buffer:
            return
        paragraph = " ".join(buffer)
        buffer.clear()
        for piece in split_definitions(paragraph):
            out.extend([piece, ""])

    for i, raw_line in enumerate(lines):
        line = raw_line.strip()
        prev_line = lines[i - 1] if i > 0 else ""
        next_line = lines[i + 1] if i + 1 < len(lines) else ""

        if not line:
            flush()
            continue

        heading = is_likely_heading(line, prev_line, next_line)
        if is_list_item(line) and not heading:
            flush()
            out.append(line)
            continue

        if heading:
            flush()
            out.extend(["", line, ""])
            continue

        if has_multiple_definitions(line):
            flush()
            out.extend(piece for d in split_definitions(line) for piece in (d, ""))
            continue

        buffer.append(line)
        if line.endswith(SENTENCE_END):
            upcoming = next_line.strip()
            if not upcoming or upcoming[0].isupper():
                flush()

    flush()
    return "\n".join(out)


def detect_and_format_lists(text: str) -> str:
    lines = text.split("\n")
    out: List[str] = []
    in_list = False

    for i, raw_line in enumerate(lines):
        line = raw_line.strip()
        if not line:
            out.append("")
            in_list = False
            continue

        prev_line = lines[i - 1] if i > 0 else ""
        next_line = lines[i + 1] if i + 1 < len(lines) else ""
        if is_list_item(line) and not is_likely_heading(line, prev_line, next_line):
            if not in_list:
                out.append("")
                in_list = True
            out.append(BULLET + LIST_MARKER_RE.sub("", line, count=1))
        else:
            if in_list:
                out.append("")
                in_list = False
            out.append(line)

    return "\n".join(out)


def clean_whitespace(text: str) -> str:
    text = MULTI_SPACE_RE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = EXCESS_NEWLINES_RE.sub("\n\n", text)
    return text.strip()


def _preprocess_once(text: str) -> str:
    text = fix_extraction_issues(text)
    text = restore_paragraph_structure(text)
    text = detect_and_format_lists(text)
    return clean_whitespace(text)


def preprocess(raw: str) -> str:
    """Normalize raw study text into paragraphs, headings and bullet lists."""
    text = raw or ""
    for _ in range(MAX_PASSES):
        updated = _preprocess_once(text)
        if updated == text:
            break
        text = updated
    else:
        logger.warning("preprocess_not_converged", passes=MAX_PASSES, length=len(text))
    return text


def clean(text: str) -> str:
    """Tidy punctuation noise left after preprocessing."""
    text = LONG_ELLIPSIS_RE.sub("...", text)
    text = REPEATED_MARK_RE.sub(r"\1", text)
    text = MIXED_MARKS_RE.sub(" ", text)
    text = SPACE_BEFORE_PUNCT_RE.sub(r"\1", text)
    text = MISSING_SPACE_RE.sub(r"\1 \2", text)
    text = DOUBLED_MARK_RE.sub(r"\1", text)
    text = DOUBLE_PERIOD_RE.sub(".", text)
    return clean_whitespace(text)


def normalize(raw: str) -> str:
    text = preprocess(raw)
    logger.debug("text_preprocessed", original_length=len(raw or ""), length=len(text))
    return clean(text)
