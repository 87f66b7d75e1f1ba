from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from .base import Base


# --- Experiment Model ---
class ExperimentORM(Base):
    __tablename__ = "experiments"

    experiment_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)

    # One Experiment has Many base assignments and overrides
    treatments = relationship("TreatmentORM", back_populates="experiment")
    overrides = relationship("OverrideORM", back_populates="experiment")
