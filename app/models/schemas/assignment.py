from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AssignmentSetModel(BaseModel):
    """Body of a PUT on a base assignment or override."""

    treatment_id: str = Field(
        ..., min_length=1, description="The treatment (variant label) to assign."
    )


class AssignmentModel(BaseModel):
    """A stored (experiment, user) -> treatment entry from either partition."""

    experiment_id: int
    user_id: str
    treatment_id: str = Field(..., description="The treatment the user is assigned to.")

    model_config = ConfigDict(from_attributes=True)


class TriggerCountModel(BaseModel):
    """Current value of one trigger counter."""

    experiment_id: int
    treatment_id: str
    count: int = Field(..., ge=0)


# Resolution responses are the bare treatment string, or null when unassigned
ResolvedTreatment = Optional[str]
