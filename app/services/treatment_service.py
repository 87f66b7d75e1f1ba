# services/treatment_service.py
from typing import Optional

from sqlalchemy.orm import Session

from app.repositories.assignment_repo import OverrideRepository, TreatmentRepository
from app.services.observation import observe
from app.services.resolution import ResolutionEngine
from app.services.trigger_observer import TriggerObserver


class TreatmentService:
    def __init__(self, db: Session, trigger_observer: TriggerObserver):
        self.treatment_repo = TreatmentRepository(db)
        self.override_repo = OverrideRepository(db)
        self.resolution_engine = ResolutionEngine(self.override_repo, self.treatment_repo)
        self.trigger_observer = trigger_observer

    def get_treatment(self, experiment_id: int, user_id: str) -> Optional[str]:
        """Resolves the user's treatment without recording anything."""
        return self.resolution_engine.resolve(experiment_id, user_id)

    def get_treatment_and_trigger(self, experiment_id: int, user_id: str) -> Optional[str]:
        """
        Resolves the user's treatment and, when there is one, records a
        trigger for (experiment_id, treatment).
        """
        return observe(
            lambda: self.get_treatment(experiment_id, user_id),
            lambda treatment_id: self.trigger_observer.record(experiment_id, treatment_id),
            name="get_treatment",
        )

    # --- Assignment administration ---

    def set_treatment(self, experiment_id: int, user_id: str, treatment_id: str) -> None:
        self.treatment_repo.set(experiment_id, user_id, treatment_id)

    def set_override(self, experiment_id: int, user_id: str, treatment_id: str) -> None:
        self.override_repo.set(experiment_id, user_id, treatment_id)

    def delete_treatment(self, experiment_id: int, user_id: str) -> None:
        self.treatment_repo.delete(experiment_id, user_id)

    def delete_override(self, experiment_id: int, user_id: str) -> None:
        self.override_repo.delete(experiment_id, user_id)
