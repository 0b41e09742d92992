from sqlmodel import SQLModel, create_engine, Session

from studyguide.config import DATABASE_URL
from studyguide.models import ReviewerRecord, QuizRecord  # noqa: F401 registers the tables

# SQLite needs this to be used from FastAPI's threadpool
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)


def init_db() -> None:
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
