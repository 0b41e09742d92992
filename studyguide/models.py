from datetime import datetime
from typing import List, Optional

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON


class ReviewerRecord(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    original_text: str = ""
    sections: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    concepts: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    doc_metadata: dict = Field(default_factory=dict, sa_column=Column(JSON))
    processing_version: str = ""
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "sections": self.sections,
            "concepts": self.concepts,
            "metadata": self.doc_metadata,
            "originalText": self.original_text,
            "createdAt": self.created_at.isoformat(),
        }


class QuizRecord(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    reviewer_id: int = Field(foreign_key="reviewerrecord.id", index=True)
    questions: dict = Field(default_factory=dict, sa_column=Column(JSON))
    fallback_cells: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow)
