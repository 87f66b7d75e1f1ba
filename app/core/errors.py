class TreatmentServiceError(Exception):
    """Base class for errors raised by the treatment resolution core."""


class StorageUnavailable(TreatmentServiceError):
    """The assignment store could not complete a read or write."""

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        message = f"Assignment store unavailable during {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ObservationFailure(TreatmentServiceError):
    """A trigger could not be recorded. Never surfaced to end callers."""

    def __init__(self, experiment_id: int, treatment_id: str):
        self.experiment_id = experiment_id
        self.treatment_id = treatment_id
        super().__init__(
            f"Failed to record trigger for experiment {experiment_id}, treatment {treatment_id!r}"
        )


class UnknownExperiment(TreatmentServiceError):
    """An assignment write referenced an experiment that does not exist."""

    def __init__(self, experiment_id: int):
        self.experiment_id = experiment_id
        super().__init__(f"Experiment {experiment_id} not found.")
