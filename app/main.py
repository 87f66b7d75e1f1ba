import logging
from contextlib import asynccontextmanager
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Path, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
import uvicorn
from sqlalchemy.orm import Session
from starlette import status

from app.core.auth import require_auth_token
from app.core.db import get_db, init_db
from app.core.errors import StorageUnavailable, UnknownExperiment
from app.core.logging import configure_logging
from app.core.settings import config_settings
from app.models.schemas.assignment import (
    AssignmentModel,
    AssignmentSetModel,
    ResolvedTreatment,
    TriggerCountModel,
)
from app.services.treatment_service import TreatmentService
from app.services.trigger_observer import TriggerObserver

logger = logging.getLogger(__name__)

# Experiment ids are stored as signed 64-bit integers
ExperimentId = Annotated[
    int,
    Path(description="The ID of the experiment.", ge=-(2**63), le=2**63 - 1),
]


def get_trigger_observer(request: Request) -> TriggerObserver:
    """The process-wide observer built in create_app()."""
    return request.app.state.trigger_observer


# --- Treatment resolution ---

router = APIRouter()


@router.get("/", response_class=PlainTextResponse, summary="Liveness check")
def ping():
    return "pong"


@router.get(
    "/get_treatment/{experiment_id}/{user_id}",
    response_model=ResolvedTreatment,
    status_code=status.HTTP_200_OK,
    summary="Get treatment without triggering",
)
def get_treatment(
    experiment_id: ExperimentId,
    user_id: str = Path(..., description="The ID of the user."),
    db: Session = Depends(get_db),
    trigger_observer: TriggerObserver = Depends(get_trigger_observer),
):
    """Returns the user's treatment (override first, then base), or null."""
    treatment_service = TreatmentService(db, trigger_observer)
    return treatment_service.get_treatment(experiment_id, user_id)


@router.get(
    "/get_treatment_and_trigger/{experiment_id}/{user_id}",
    response_model=ResolvedTreatment,
    status_code=status.HTTP_200_OK,
    summary="Get treatment and record a trigger",
)
def get_treatment_and_trigger(
    experiment_id: ExperimentId,
    user_id: str = Path(..., description="The ID of the user."),
    db: Session = Depends(get_db),
    trigger_observer: TriggerObserver = Depends(get_trigger_observer),
):
    """
    Same resolution as /get_treatment. When a treatment is found, the
    trigger counter for (experiment, treatment) goes up by one.
    """
    treatment_service = TreatmentService(db, trigger_observer)
    return treatment_service.get_treatment_and_trigger(experiment_id, user_id)


# --- Metrics ---


@router.get("/metrics", summary="Trigger counters in OpenMetrics text format")
def metrics(trigger_observer: TriggerObserver = Depends(get_trigger_observer)):
    content, content_type = trigger_observer.render()
    return Response(content=content, media_type=content_type)


@router.get(
    "/triggers",
    response_model=List[TriggerCountModel],
    summary="Snapshot of all trigger counters",
)
def get_triggers(trigger_observer: TriggerObserver = Depends(get_trigger_observer)):
    return [
        TriggerCountModel(experiment_id=experiment_id, treatment_id=treatment_id, count=count)
        for (experiment_id, treatment_id), count in sorted(trigger_observer.snapshot().items())
    ]


# --- Assignment administration ---

admin_router = APIRouter(
    prefix="/experiments/{experiment_id}",
    tags=["admin"],
    dependencies=[Depends(require_auth_token)],
)


@admin_router.put(
    "/treatments/{user_id}",
    response_model=AssignmentModel,
    status_code=status.HTTP_200_OK,
    summary="Set a user's base treatment",
)
def put_treatment(
    assignment_data: AssignmentSetModel,
    experiment_id: ExperimentId,
    user_id: str = Path(..., description="The ID of the user."),
    db: Session = Depends(get_db),
    trigger_observer: TriggerObserver = Depends(get_trigger_observer),
):
    treatment_service = TreatmentService(db, trigger_observer)
    treatment_service.set_treatment(experiment_id, user_id, assignment_data.treatment_id)
    return AssignmentModel(
        experiment_id=experiment_id, user_id=user_id, treatment_id=assignment_data.treatment_id
    )


@admin_router.delete(
    "/treatments/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a user's base treatment",
)
def delete_treatment(
    experiment_id: ExperimentId,
    user_id: str = Path(..., description="The ID of the user."),
    db: Session = Depends(get_db),
    trigger_observer: TriggerObserver = Depends(get_trigger_observer),
):
    treatment_service = TreatmentService(db, trigger_observer)
    treatment_service.delete_treatment(experiment_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@admin_router.put(
    "/overrides/{user_id}",
    response_model=AssignmentModel,
    status_code=status.HTTP_200_OK,
    summary="Force a user's treatment",
)
def put_override(
    assignment_data: AssignmentSetModel,
    experiment_id: ExperimentId,
    user_id: str = Path(..., description="The ID of the user."),
    db: Session = Depends(get_db),
    trigger_observer: TriggerObserver = Depends(get_trigger_observer),
):
    treatment_service = TreatmentService(db, trigger_observer)
    treatment_service.set_override(experiment_id, user_id, assignment_data.treatment_id)
    return AssignmentModel(
        experiment_id=experiment_id, user_id=user_id, treatment_id=assignment_data.treatment_id
    )


@admin_router.delete(
    "/overrides/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a user's override",
)
def delete_override(
    experiment_id: ExperimentId,
    user_id: str = Path(..., description="The ID of the user."),
    db: Session = Depends(get_db),
    trigger_observer: TriggerObserver = Depends(get_trigger_observer),
):
    treatment_service = TreatmentService(db, trigger_observer)
    treatment_service.delete_override(experiment_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
    # Retry policy belongs to the caller; report and let them decide
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Assignment store unavailable. Please try again shortly."},
    )


async def unknown_experiment_handler(request: Request, exc: UnknownExperiment):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Assignment tables ready at %s", config_settings.DATABASE_URL)
    yield


def create_app(trigger_observer: Optional[TriggerObserver] = None) -> FastAPI:
    """Builds the application and the trigger observer it owns for its lifetime."""
    configure_logging(config_settings.LOG_LEVEL)

    app = FastAPI(
        title="Treatment resolution service",
        description="Resolves A/B test treatments with override precedence and trigger counting",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.trigger_observer = trigger_observer or TriggerObserver(
        namespace=config_settings.METRICS_NAMESPACE
    )
    app.include_router(router)
    app.include_router(admin_router)
    app.add_exception_handler(StorageUnavailable, storage_unavailable_handler)
    app.add_exception_handler(UnknownExperiment, unknown_experiment_handler)
    return app


app = create_app()


# Entry point for running the application directly (useful for local development)
if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=3000, reload=True)
