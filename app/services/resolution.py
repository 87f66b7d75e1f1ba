# services/resolution.py
import enum
from typing import Optional, Tuple

from app.repositories.assignment_repo import AssignmentRepository


class ResolutionState(enum.Enum):
    CHECK_OVERRIDE = "CHECK_OVERRIDE"
    CHECK_BASE = "CHECK_BASE"
    RESOLVED = "RESOLVED"


class ResolutionEngine:
    """
    Resolves the effective treatment for an (experiment, user) pair.

    Overrides win over base assignments. The lookup runs as a two-step state
    machine: CHECK_OVERRIDE either resolves immediately or moves on to
    CHECK_BASE, so the base partition is never read when an override exists.
    Nothing is cached between calls.
    """

    def __init__(self, override_repo: AssignmentRepository, treatment_repo: AssignmentRepository):
        self.override_repo = override_repo
        self.treatment_repo = treatment_repo

    def step(
        self, state: ResolutionState, experiment_id: int, user_id: str
    ) -> Tuple[ResolutionState, Optional[str]]:
        """Runs one lookup and returns the next state with the value read."""
        if state is ResolutionState.CHECK_OVERRIDE:
            override = self.override_repo.get(experiment_id, user_id)
            if override is not None:
                return ResolutionState.RESOLVED, override
            return ResolutionState.CHECK_BASE, None

        if state is ResolutionState.CHECK_BASE:
            return ResolutionState.RESOLVED, self.treatment_repo.get(experiment_id, user_id)

        raise ValueError(f"Cannot step from terminal state {state}")

    def resolve(self, experiment_id: int, user_id: str) -> Optional[str]:
        # StorageUnavailable from either lookup propagates; no retries here
        state, treatment = ResolutionState.CHECK_OVERRIDE, None
        while state is not ResolutionState.RESOLVED:
            state, treatment = self.step(state, experiment_id, user_id)
        return treatment
