"""
Generation orchestrator.

Runs the heuristic pipeline, optionally enriches it with a completion
provider, and records every degradation in a ``GenerationReport``. Model
calls are issued one at a time (sections, concepts, then one call per quiz
cell); a failing call only affects its own cell.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

import structlog

from studyguide.config import VERSION
from studyguide.schemas import (
    DIFFICULTIES,
    Concept,
    GenerationReport,
    ParseFailure,
    QuestionSet,
    Reviewer,
    ReviewerMetadata,
    Section,
)
from studyguide.services import prompts
from studyguide.services.analyzer import ContentAnalysis, analyze, split_sections
from studyguide.services.concepts import extract_concepts
from studyguide.services.llm import CompletionProvider, RetryPolicy
from studyguide.services.logging import log_performance
from studyguide.services.questions import generate_questions, merge_cell, target_for
from studyguide.services.response_parser import parse
from studyguide.services.validation import (
    validate_concepts,
    validate_quiz_items,
    validate_sections,
)

logger = structlog.get_logger(__name__)

MIN_VIABLE_ITEMS = 5
THIN_CONCEPTS = 3
THIN_SENTENCES = 5
WORDS_PER_MINUTE = 200
MODEL_QUIZ_TYPES = ("trueFalse", "multipleChoice", "identification")


@dataclass
class ReviewerResult:
    reviewer: Reviewer
    analysis: ContentAnalysis
    report: GenerationReport


@dataclass
class QuizResult:
    questions: QuestionSet
    report: GenerationReport


@dataclass
class StudyGuide:
    reviewer: Reviewer
    questions: QuestionSet
    report: GenerationReport


def is_thin(concepts: Sequence[Concept], analysis: ContentAnalysis) -> bool:
    return len(concepts) < THIN_CONCEPTS or len(analysis.sentences) < THIN_SENTENCES


def _request_structure(
    provider: CompletionProvider,
    retry: RetryPolicy,
    prompt: str,
    context: str,
    temperature: float,
    report: GenerationReport,
) -> Optional[Any]:
    """One model call, parsed. None when the call or the parse failed."""
    try:
        raw = retry.call(
            lambda: provider.complete(prompt, temperature=temperature, max_tokens=prompts.MAX_TOKENS),
            context=context,
        )
    except Exception as e:
        logger.error("llm_call_failed", context=context, error=str(e), error_type=type(e).__name__)
        report.parse_failures.append(
            ParseFailure(context=context, kind="ProviderError", message=str(e) or type(e).__name__)
        )
        return None

    result = parse(raw, context=context)
    if not result.ok:
        report.parse_failures.append(
            ParseFailure(context=context, kind=result.error.value, message=result.message)
        )
        return None
    return result.value


def _metadata(analysis: ContentAnalysis, mode: str) -> ReviewerMetadata:
    words = analysis.word_count
    return ReviewerMetadata(
        word_count=words,
        sentence_count=len(analysis.sentences),
        paragraph_count=len(analysis.paragraphs),
        estimated_read_time=math.ceil(words / WORDS_PER_MINUTE),
        generated_at=datetime.now(timezone.utc).isoformat(),
        processing_version=f"{VERSION}-{mode}",
    )


@log_performance("generate_reviewer")
def generate_reviewer(
    text: str,
    title: str = "Untitled Reviewer",
    provider: Optional[CompletionProvider] = None,
    retry: Optional[RetryPolicy] = None,
) -> ReviewerResult:
    """Sections and glossary for one source text."""
    analysis = analyze(text)
    mode = "ai" if provider and not analysis.is_empty else "heuristic"
    report = GenerationReport(mode=mode)

    sections: List[Section] = []
    concepts: List[Concept] = []
    if not analysis.is_empty:
        sections = split_sections(analysis.text)
        concepts = extract_concepts(analysis)

    if mode == "ai":
        retry = retry or RetryPolicy.from_env()

        value = _request_structure(
            provider, retry, prompts.sections_prompt(analysis.text), "sections",
            prompts.SECTIONS_TEMPERATURE, report,
        )
        validated = validate_sections(value) if value is not None else None
        report.rejected_items += validated.rejected if validated else 0
        if validated and validated.items:
            sections = validated.items
        else:
            report.fallback_cells.append("sections")

        value = _request_structure(
            provider, retry, prompts.concepts_prompt(analysis.text), "concepts",
            prompts.CONCEPTS_TEMPERATURE, report,
        )
        validated = validate_concepts(value, analysis.text) if value is not None else None
        report.rejected_items += validated.rejected if validated else 0
        if validated and validated.items:
            concepts = validated.items
        else:
            report.fallback_cells.append("concepts")

    report.thin_source_material = is_thin(concepts, analysis)
    reviewer = Reviewer(
        title=title,
        sections=sections,
        concepts=concepts,
        metadata=_metadata(analysis, mode),
        original_text=text or "",
    )
    logger.info(
        "reviewer_generated",
        mode=mode,
        sections=len(sections),
        concepts=len(concepts),
        fallback_cells=report.fallback_cells,
        thin=report.thin_source_material,
    )
    return ReviewerResult(reviewer=reviewer, analysis=analysis, report=report)


@log_performance("generate_quiz")
def generate_quiz(
    text: str,
    concepts: Sequence[Concept],
    sections: Optional[Sequence[Section]] = None,
    provider: Optional[CompletionProvider] = None,
    retry: Optional[RetryPolicy] = None,
    rng: Optional[random.Random] = None,
) -> QuizResult:
    """Question set for every quiz type and difficulty.

    Matching always comes from the concepts. For the other types each cell
    holds the model's valid items topped up with heuristic ones; a cell is
    reported as a fallback when the model produced fewer than five.
    """
    analysis = analyze(text)
    concepts = list(concepts)
    if not sections and not analysis.is_empty:
        sections = split_sections(analysis.text)
    sections = list(sections or [])

    heuristic = generate_questions(sections, concepts, rng)
    use_model = provider is not None and not (analysis.is_empty and not concepts)
    report = GenerationReport(mode="ai" if use_model else "heuristic")
    report.thin_source_material = is_thin(concepts, analysis)

    if not use_model:
        return QuizResult(questions=heuristic, report=report)

    retry = retry or RetryPolicy.from_env()
    source = analysis.text or "\n".join(f"{c.term}: {c.definition}" for c in concepts)
    questions = QuestionSet(matching=heuristic.matching)

    for quiz_type in MODEL_QUIZ_TYPES:
        for difficulty in DIFFICULTIES:
            context = f"{quiz_type}-{difficulty}"
            value = _request_structure(
                provider, retry, prompts.quiz_prompt(quiz_type, difficulty, source), context,
                prompts.QUIZ_TEMPERATURES[difficulty], report,
            )
            model_items = []
            if value is not None:
                validated = validate_quiz_items(quiz_type, value, context)
                report.rejected_items += validated.rejected
                model_items = validated.items[: target_for(quiz_type, difficulty)]

            if len(model_items) < MIN_VIABLE_ITEMS:
                report.fallback_cells.append(f"{quiz_type}.{difficulty}")
            questions.set_cell(
                quiz_type,
                difficulty,
                merge_cell(quiz_type, difficulty, model_items, heuristic.cell(quiz_type, difficulty)),
            )

    logger.info(
        "quiz_generated",
        total=questions.total(),
        fallback_cells=report.fallback_cells,
        rejected_items=report.rejected_items,
    )
    return QuizResult(questions=questions, report=report)


def generate_study_guide(
    text: str,
    title: str = "Untitled Reviewer",
    provider: Optional[CompletionProvider] = None,
    retry: Optional[RetryPolicy] = None,
    rng: Optional[random.Random] = None,
) -> StudyGuide:
    """Reviewer followed by its quiz, with one combined report."""
    reviewer_result = generate_reviewer(text, title, provider=provider, retry=retry)
    reviewer = reviewer_result.reviewer
    quiz_result = generate_quiz(
        text, reviewer.concepts, reviewer.sections, provider=provider, retry=retry, rng=rng
    )

    first, second = reviewer_result.report, quiz_result.report
    report = GenerationReport(
        mode=first.mode,
        thin_source_material=first.thin_source_material or second.thin_source_material,
        fallback_cells=first.fallback_cells + second.fallback_cells,
        parse_failures=first.parse_failures + second.parse_failures,
        rejected_items=first.rejected_items + second.rejected_items,
    )
    return StudyGuide(reviewer=reviewer, questions=quiz_result.questions, report=report)
