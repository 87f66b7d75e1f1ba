"""Tests for override-over-base resolution."""

import pytest

from app.core.errors import StorageUnavailable
from app.services.resolution import ResolutionEngine, ResolutionState


class FakePartition:
    """In-memory stand-in for an AssignmentRepository that records reads."""

    def __init__(self, entries=None, error=None):
        self.entries = entries or {}
        self.error = error
        self.reads = []

    def get(self, experiment_id, user_id):
        self.reads.append((experiment_id, user_id))
        if self.error:
            raise self.error
        return self.entries.get((experiment_id, user_id))


def test_override_wins_over_base():
    overrides = FakePartition({(1, "alice"): "variant_b"})
    treatments = FakePartition({(1, "alice"): "control"})

    assert ResolutionEngine(overrides, treatments).resolve(1, "alice") == "variant_b"


def test_base_not_read_when_override_exists():
    overrides = FakePartition({(1, "alice"): "variant_b"})
    treatments = FakePartition({(1, "alice"): "control"})

    ResolutionEngine(overrides, treatments).resolve(1, "alice")

    assert treatments.reads == []


def test_falls_back_to_base():
    overrides = FakePartition()
    treatments = FakePartition({(1, "alice"): "control"})

    assert ResolutionEngine(overrides, treatments).resolve(1, "alice") == "control"
    assert overrides.reads == [(1, "alice")]
    assert treatments.reads == [(1, "alice")]


def test_no_assignment_resolves_to_none():
    engine = ResolutionEngine(FakePartition(), FakePartition())
    assert engine.resolve(1, "alice") is None


def test_every_call_rereads_the_store():
    overrides = FakePartition()
    treatments = FakePartition({(1, "alice"): "control"})
    engine = ResolutionEngine(overrides, treatments)

    assert engine.resolve(1, "alice") == "control"
    overrides.entries[(1, "alice")] = "variant_b"
    assert engine.resolve(1, "alice") == "variant_b"


def test_step_transitions():
    overrides = FakePartition({(1, "alice"): "variant_b"})
    treatments = FakePartition({(1, "bob"): "control"})
    engine = ResolutionEngine(overrides, treatments)

    assert engine.step(ResolutionState.CHECK_OVERRIDE, 1, "alice") == (
        ResolutionState.RESOLVED,
        "variant_b",
    )
    assert engine.step(ResolutionState.CHECK_OVERRIDE, 1, "bob") == (
        ResolutionState.CHECK_BASE,
        None,
    )
    assert engine.step(ResolutionState.CHECK_BASE, 1, "bob") == (
        ResolutionState.RESOLVED,
        "control",
    )

    with pytest.raises(ValueError):
        engine.step(ResolutionState.RESOLVED, 1, "bob")


def test_override_storage_error_propagates():
    """A failing override lookup is not mistaken for a missing override."""
    overrides = FakePartition(error=StorageUnavailable("override get"))
    treatments = FakePartition({(1, "alice"): "control"})

    with pytest.raises(StorageUnavailable):
        ResolutionEngine(overrides, treatments).resolve(1, "alice")

    assert treatments.reads == []


def test_base_storage_error_propagates():
    overrides = FakePartition()
    treatments = FakePartition(error=StorageUnavailable("treatment get"))

    with pytest.raises(StorageUnavailable):
        ResolutionEngine(overrides, treatments).resolve(1, "alice")
