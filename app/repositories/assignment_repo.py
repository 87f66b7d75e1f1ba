# repositories/assignment_repo.py
import logging
from typing import Optional, Type

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import StorageUnavailable, UnknownExperiment
from app.models.orm.assignment import OverrideORM, TreatmentORM

logger = logging.getLogger(__name__)

# Dialects with native INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class AssignmentRepository:
    """
    Keyed (experiment_id, user_id) -> treatment_id storage for one partition.

    Subclasses pick the partition by setting ``model``. Every SQLAlchemy
    failure is rolled back and re-raised as StorageUnavailable, so callers
    never see a partial write.
    """

    model: Type = None
    partition: str = ""

    def __init__(self, db: Session):
        self.db = db

    def get(self, experiment_id: int, user_id: str) -> Optional[str]:
        """Point lookup of the treatment for a user, or None if unassigned."""
        stmt = select(self.model.treatment_id).where(
            self.model.experiment_id == experiment_id,
            self.model.user_id == user_id,
        )
        try:
            return self.db.scalars(stmt).one_or_none()
        except SQLAlchemyError as e:
            self._fail("get", experiment_id, user_id, e)

    def set(self, experiment_id: int, user_id: str, treatment_id: str) -> None:
        """Upserts the assignment; the last write for a pair wins."""
        try:
            insert = _UPSERT_INSERTS.get(self.db.get_bind().dialect.name)
            if insert is None:
                # No ON CONFLICT support: merge() resolves on the primary key
                self.db.merge(
                    self.model(
                        experiment_id=experiment_id,
                        user_id=user_id,
                        treatment_id=treatment_id,
                    )
                )
            else:
                stmt = insert(self.model).values(
                    experiment_id=experiment_id,
                    user_id=user_id,
                    treatment_id=treatment_id,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["experiment_id", "user_id"],
                    set_={"treatment_id": stmt.excluded.treatment_id},
                )
                self.db.execute(stmt)
            self.db.commit()
        except IntegrityError as e:
            # The only constraint an upsert can break is the experiment foreign key
            self.db.rollback()
            logger.warning(
                "Rejected %s for unknown experiment %s, user %s: %s",
                self.partition, experiment_id, user_id, e,
            )
            raise UnknownExperiment(experiment_id) from e
        except SQLAlchemyError as e:
            self._fail("set", experiment_id, user_id, e)

        logger.info(
            "Set %s for experiment %s, user %s to %r",
            self.partition, experiment_id, user_id, treatment_id,
        )

    def delete(self, experiment_id: int, user_id: str) -> None:
        """Removes the assignment if present. Missing entries are not an error."""
        stmt = delete(self.model).where(
            self.model.experiment_id == experiment_id,
            self.model.user_id == user_id,
        )
        try:
            self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            self._fail("delete", experiment_id, user_id, e)

    def _fail(self, operation: str, experiment_id: int, user_id: str, error: SQLAlchemyError):
        self.db.rollback()
        logger.error(
            "Storage error during %s %s (experiment %s, user %s): %s",
            self.partition, operation, experiment_id, user_id, error,
        )
        raise StorageUnavailable(
            f"{self.partition} {operation}", (str(error).splitlines() or [""])[0]
        ) from error


class TreatmentRepository(AssignmentRepository):
    """Base assignments."""

    model = TreatmentORM
    partition = "treatment"


class OverrideRepository(AssignmentRepository):
    """Manual overrides."""

    model = OverrideORM
    partition = "override"
