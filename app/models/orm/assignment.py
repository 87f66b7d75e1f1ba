from sqlalchemy import Column, ForeignKey, Integer, PrimaryKeyConstraint, String
from sqlalchemy.orm import relationship

from .base import Base


class TreatmentORM(Base):
    """Base (system-computed) assignment of a user to a treatment."""

    __tablename__ = "treatments"

    experiment_id = Column(
        Integer, ForeignKey("experiments.experiment_id"), nullable=False, index=True
    )
    user_id = Column(String, nullable=False, index=True)
    treatment_id = Column(String, nullable=False)

    # One live value per (experiment, user); writes upsert on this key
    __table_args__ = (
        PrimaryKeyConstraint("experiment_id", "user_id", name="treatments_pk"),
    )

    experiment = relationship("ExperimentORM", back_populates="treatments")


class OverrideORM(Base):
    """Manually forced treatment, wins over TreatmentORM when present."""

    __tablename__ = "overrides"

    experiment_id = Column(
        Integer, ForeignKey("experiments.experiment_id"), nullable=False, index=True
    )
    user_id = Column(String, nullable=False, index=True)
    treatment_id = Column(String, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("experiment_id", "user_id", name="overrides_pk"),
    )

    experiment = relationship("ExperimentORM", back_populates="overrides")
