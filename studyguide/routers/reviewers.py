from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session, select
import structlog

from studyguide.db import get_session
from studyguide.middleware.rate_limit import ai_generation_limit
from studyguide.models import QuizRecord, ReviewerRecord
from studyguide.schemas import ReviewerRequest
from studyguide.services.generator import generate_reviewer
from studyguide.services.llm import CompletionProvider, get_completion_provider
from studyguide.services.monitoring import record_generation, record_generation_failure

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["reviewers"])


def save_reviewer(session: Session, reviewer, text: str) -> ReviewerRecord:
    payload = reviewer.to_payload()
    record = ReviewerRecord(
        title=reviewer.title,
        original_text=text,
        sections=payload["sections"],
        concepts=payload["concepts"],
        doc_metadata=payload["metadata"],
        processing_version=reviewer.metadata.processing_version,
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


@router.post("/generate-reviewer")
@ai_generation_limit()
def create_reviewer(
    request: Request,
    payload: ReviewerRequest,
    session: Session = Depends(get_session),
    provider: Optional[CompletionProvider] = Depends(get_completion_provider),
):
    if not payload.text.strip():
        raise HTTPException(status_code=400, detail="Text is required")

    try:
        result = generate_reviewer(
            payload.text,
            payload.title.strip() or "Untitled Reviewer",
            provider=provider if payload.use_ai else None,
        )
    except Exception as e:
        record_generation_failure("reviewer")
        logger.error("reviewer_generation_failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Failed to generate reviewer: {e}")

    record = save_reviewer(session, result.reviewer, payload.text)
    record_generation("reviewer", result.report)
    logger.info("reviewer_saved", reviewer_id=record.id, title=record.title)

    return {
        **result.reviewer.to_payload(),
        "reviewerId": record.id,
        "report": result.report.to_payload(),
    }


@router.get("/reviewers")
def list_reviewers(session: Session = Depends(get_session)):
    records = session.exec(select(ReviewerRecord).order_by(ReviewerRecord.created_at.desc())).all()
    return [
        {
            "id": r.id,
            "title": r.title,
            "createdAt": r.created_at.isoformat(),
            "sectionCount": len(r.sections or []),
            "conceptCount": len(r.concepts or []),
        }
        for r in records
    ]


@router.get("/reviewer/{reviewer_id}")
def get_reviewer(reviewer_id: int, session: Session = Depends(get_session)):
    record = session.get(ReviewerRecord, reviewer_id)
    if not record:
        raise HTTPException(status_code=404, detail="Reviewer not found")
    return record.to_payload()


@router.delete("/reviewer/{reviewer_id}")
def delete_reviewer(reviewer_id: int, session: Session = Depends(get_session)):
    record = session.get(ReviewerRecord, reviewer_id)
    if not record:
        raise HTTPException(status_code=404, detail="Reviewer not found")
    for quiz in session.exec(select(QuizRecord).where(QuizRecord.reviewer_id == reviewer_id)).all():
        session.delete(quiz)
    session.delete(record)
    session.commit()
    logger.info("reviewer_deleted", reviewer_id=reviewer_id)
    return {"deleted": reviewer_id}
