"""Relational persistence of generated assessments, lesson plans and resources."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from edugen.core.config import settings
from edugen.core.exceptions import PersistenceError
from edugen.models.generation_models import AssessmentRecord
from edugen.models.generation_models import LessonPlanRecord
from edugen.models.generation_models import ResourceMetadata
from edugen.models.generation_models import ResourceRecord
from edugen.services.storage.db import Assessment
from edugen.services.storage.db import Base
from edugen.services.storage.db import LessonPlan
from edugen.services.storage.db import Resource
from edugen.services.storage.db import make_engine
from edugen.services.storage.db import make_session_factory

logger = logging.getLogger(__name__)


class SQLAlchemyRecordStore:
    """Record store backed by a SQLAlchemy engine. Methods are blocking; call them off the event loop."""

    def __init__(self, database_url: str | None = None):
        self.engine = make_engine(database_url or settings.database_url)
        self._session_factory = make_session_factory(self.engine)

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)
        logger.info("Database schema ensured on %s", self.engine.url.render_as_string(hide_password=True))

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Database error while %s: %s", action, str(e))
            raise PersistenceError(f"Database error while {action}: {str(e)}") from e
        finally:
            session.close()

    # --- assessments ---

    def insert_assessment(self, record: AssessmentRecord) -> int:
        with self._session("saving assessment") as session:
            row = Assessment(**record.model_dump())
            session.add(row)
            session.flush()
            return row.id

    def list_assessments(self, user_id: str, limit: int = 10) -> list[AssessmentRecord]:
        with self._session("listing assessments") as session:
            rows = session.scalars(
                select(Assessment)
                .where(Assessment.user_id == user_id)
                .order_by(Assessment.created_at.desc(), Assessment.id.desc())
                .limit(limit)
            ).all()
            return [
                AssessmentRecord(
                    user_id=row.user_id,
                    subject=row.subject,
                    grade_level=row.grade_level,
                    topic=row.topic,
                    generated_tos=row.generated_tos,
                    generated_questions=row.generated_questions,
                )
                for row in rows
            ]

    # --- lesson plans ---

    def insert_lesson_plan(self, record: LessonPlanRecord) -> int:
        with self._session("saving lesson plan") as session:
            row = LessonPlan(**record.model_dump(exclude={"id", "created_at"}))
            session.add(row)
            session.flush()
            return row.id

    def list_lesson_plans(self, user_id: str, limit: int = 10) -> list[LessonPlanRecord]:
        with self._session("listing lesson plans") as session:
            rows = session.scalars(
                select(LessonPlan)
                .where(LessonPlan.user_id == user_id)
                .order_by(LessonPlan.created_at.desc(), LessonPlan.id.desc())
                .limit(limit)
            ).all()
            return [LessonPlanRecord.model_validate(row) for row in rows]

    def get_lesson_plan(self, user_id: str, lesson_plan_id: int) -> LessonPlanRecord | None:
        with self._session("loading lesson plan") as session:
            row = session.get(LessonPlan, lesson_plan_id)
            if row is None or row.user_id != user_id:
                return None
            return LessonPlanRecord.model_validate(row)

    # --- resources ---

    def insert_resource(self, user_id: str, metadata: ResourceMetadata) -> ResourceRecord:
        with self._session("saving resource") as session:
            row = Resource(user_id=user_id, **metadata.model_dump())
            session.add(row)
            session.flush()
            return ResourceRecord.model_validate(row)

    def list_resources(self, user_id: str) -> list[ResourceRecord]:
        with self._session("listing resources") as session:
            rows = session.scalars(
                select(Resource).where(Resource.user_id == user_id).order_by(Resource.created_at.desc(), Resource.id.desc())
            ).all()
            return [ResourceRecord.model_validate(row) for row in rows]
