from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session, select
import structlog

from studyguide.db import get_session
from studyguide.middleware.rate_limit import ai_generation_limit
from studyguide.models import QuizRecord, ReviewerRecord
from studyguide.schemas import Concept, IdentificationCheckRequest, QuestionsRequest, Section
from studyguide.services.generator import generate_quiz
from studyguide.services.llm import CompletionProvider, get_completion_provider
from studyguide.services.monitoring import record_generation, record_generation_failure
from studyguide.services.similarity import check_identification_answer, similarity

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["quiz"])


@router.post("/generate-questions")
@ai_generation_limit()
def create_questions(
    request: Request,
    payload: QuestionsRequest,
    session: Session = Depends(get_session),
    provider: Optional[CompletionProvider] = Depends(get_completion_provider),
):
    text, concepts, sections = payload.text, list(payload.concepts), list(payload.sections)

    reviewer = None
    if payload.reviewer_id is not None:
        reviewer = session.get(ReviewerRecord, payload.reviewer_id)
        if not reviewer:
            raise HTTPException(status_code=404, detail="Reviewer not found")
        # Stored reviewer fills whatever the request left out
        text = text or reviewer.original_text
        concepts = concepts or [Concept.model_validate(c) for c in reviewer.concepts or []]
        sections = sections or [Section.model_validate(s) for s in reviewer.sections or []]

    if not text.strip() and not concepts:
        raise HTTPException(status_code=400, detail="Text or concepts are required")

    try:
        result = generate_quiz(
            text,
            concepts,
            sections,
            provider=provider if payload.use_ai else None,
        )
    except Exception as e:
        record_generation_failure("quiz")
        logger.error("quiz_generation_failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Failed to generate questions: {e}")

    questions = result.questions.to_payload()
    if reviewer is not None:
        record = QuizRecord(
            reviewer_id=reviewer.id,
            questions=questions,
            fallback_cells=result.report.fallback_cells,
        )
        session.add(record)
        session.commit()
        logger.info("quiz_saved", reviewer_id=reviewer.id, total=result.questions.total())

    record_generation("quiz", result.report)
    return {"questions": questions, "report": result.report.to_payload()}


@router.get("/quiz-questions/{reviewer_id}")
def get_quiz_questions(reviewer_id: int, session: Session = Depends(get_session)):
    record = session.exec(
        select(QuizRecord)
        .where(QuizRecord.reviewer_id == reviewer_id)
        .order_by(QuizRecord.id.desc())
    ).first()
    if not record:
        raise HTTPException(status_code=404, detail="No questions found for this reviewer")
    return {
        "reviewerId": reviewer_id,
        "questions": record.questions,
        "fallbackCells": record.fallback_cells,
        "createdAt": record.created_at.isoformat(),
    }


@router.post("/quiz/check-identification")
def check_identification(payload: IdentificationCheckRequest):
    correct = payload.correct.strip().lower()
    answer = payload.answer.strip().lower()
    return {
        "correct": check_identification_answer(payload.correct, payload.answer),
        "similarity": round(similarity(correct, answer), 3),
    }
