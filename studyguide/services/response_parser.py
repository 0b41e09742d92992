"""
Repair parser for language-model completions.

Completions often arrive wrapped in Markdown fences or explanatory prose,
and are regularly cut off by the token limit. ``parse`` locates the JSON
payload, applies a small ordered set of repairs and always returns a
``ParseResult``; it never raises.

Repairs only run after the untouched candidate failed to load, so valid
JSON is never rewritten.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)

SNIPPET_LIMIT = 1000

# Fences are only recognised on their own line or at either end of the text
FENCE_LINE_RE = re.compile(r"^[ \t]*```[\w-]*[ \t]*$", re.MULTILINE)
EDGE_FENCE_RE = re.compile(r"\A```(?:json)?|```\Z", re.IGNORECASE)
TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")

CLOSERS = {"[": "]", "{": "}"}


class ParseErrorKind(str, Enum):
    NO_STRUCTURE_FOUND = "NoStructureFound"
    INVALID_JSON = "InvalidJson"


@dataclass(frozen=True)
class ParseResult:
    value: Any = None
    error: Optional[ParseErrorKind] = None
    message: str = ""
    raw_snippet: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any) -> "ParseResult":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ParseErrorKind, message: str, raw_text: str) -> "ParseResult":
        return cls(error=kind, message=message, raw_snippet=raw_text[:SNIPPET_LIMIT])


def strip_code_fences(text: str) -> str:
    """Remove Markdown fence markers, leaving backticks inside values alone."""
    text = FENCE_LINE_RE.sub("", text.strip())
    return EDGE_FENCE_RE.sub("", text.strip())


def find_structure_start(text: str) -> int:
    """Index of the first ``[`` or ``{``, or -1."""
    positions = [pos for pos in (text.find("["), text.find("{")) if pos != -1]
    return min(positions) if positions else -1


def remove_trailing_commas(text: str) -> str:
    return TRAILING_COMMA_RE.sub(r"\1", text)


def _unclosed_openers(text: str) -> List[Tuple[str, int]]:
    """Scan outside string literals and return the stack of unclosed brackets.

    A closer that does not match the innermost opener is ignored.
    """
    stack: List[Tuple[str, int]] = []
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in CLOSERS:
            stack.append((char, index))
        elif stack and char == CLOSERS[stack[-1][0]]:
            stack.pop()
    return stack


def truncate_dangling_object(candidate: str) -> str:
    """Drop a trailing array element whose object was never closed."""
    if not candidate.startswith("["):
        return candidate
    stack = _unclosed_openers(candidate)
    dangling = [index for char, index in stack[1:2] if char == "{"]
    if not dangling:
        return candidate
    truncated = remove_trailing_commas(candidate[: dangling[0]].rstrip())
    truncated = truncated.rstrip().rstrip(",").rstrip()
    if not truncated.endswith("]"):
        truncated += "\n]"
    return truncated


def _load(candidate: str) -> Tuple[bool, Any, str]:
    try:
        return True, json.loads(candidate), ""
    except (ValueError, RecursionError) as e:
        return False, None, str(e)


def _raw_decode(text: str, start: int) -> Tuple[bool, Any]:
    """Decode the first complete value at ``start``, ignoring what follows."""
    try:
        value, _ = json.JSONDecoder().raw_decode(text, start)
        return True, value
    except (ValueError, RecursionError):
        return False, None


def parse(raw_text: str, context: str = "response") -> ParseResult:
    """Recover a JSON value from a raw completion.

    Args:
        raw_text: The completion exactly as received
        context:  Label used in diagnostics only (e.g. "tf-easy")

    Returns:
        ParseResult holding the value, or the failure kind and the first
        1000 characters of ``raw_text``
    """
    raw_text = raw_text or ""
    logger.debug("parsing_response", context=context, length=len(raw_text))

    # Untouched text first, so valid JSON is returned exactly as sent
    untouched = raw_text.strip()
    start = find_structure_start(untouched)
    if start != -1:
        decoded, value = _raw_decode(untouched, start)
        if decoded:
            return _success(value, context)

    cleaned = strip_code_fences(untouched)

    start = find_structure_start(cleaned)
    if start == -1:
        logger.error(
            "no_json_structure", context=context, snippet=raw_text[:SNIPPET_LIMIT]
        )
        return ParseResult.failure(
            ParseErrorKind.NO_STRUCTURE_FOUND,
            f"No JSON structure found in {context}",
            raw_text,
        )

    closer = CLOSERS[cleaned[start]]
    end = cleaned.rfind(closer)
    if end <= start:
        logger.warning("json_repair", context=context, repair="missing_terminator", added=closer)
        cleaned = cleaned + "\n" + closer
        end = cleaned.rfind(closer)

    candidate = cleaned[start : end + 1]

    loaded, value, error = _load(candidate)
    if loaded:
        return _success(value, context)

    # Trailing prose may itself contain a closing bracket
    decoded, value = _raw_decode(cleaned, start)
    if decoded:
        return _success(value, context)

    repaired = remove_trailing_commas(candidate)
    if repaired != candidate:
        logger.warning("json_repair", context=context, repair="trailing_comma")
        loaded, value, error = _load(repaired)
        if loaded:
            return _success(value, context)

    # The last closer may belong to a nested value, so scan everything after the start
    tail = remove_trailing_commas(cleaned[start:].rstrip())
    truncated = truncate_dangling_object(tail)
    if truncated != tail:
        logger.warning("json_repair", context=context, repair="truncated_object")
        loaded, value, error = _load(truncated)
        if loaded:
            return _success(value, context)

    logger.error(
        "invalid_json", context=context, error=error, snippet=raw_text[:SNIPPET_LIMIT]
    )
    return ParseResult.failure(
        ParseErrorKind.INVALID_JSON, f"Invalid JSON in {context}: {error}", raw_text
    )


def _success(value: Any, context: str) -> ParseResult:
    size = len(value) if isinstance(value, list) else "object"
    logger.info("response_parsed", context=context, items=size)
    return ParseResult.success(value)
