"""Lifecycle state machines for samples, tasks, and experiments.

Each machine is a table of legal next states. A transition to the current
state is always legal. Terminal states map to an empty set.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Generic, TypeVar

from labvault.core.exceptions import InvalidTransition
from labvault.models.enums import (
    ExperimentStatus,
    SampleStatus,
    TaskSampleProgress,
    TaskStatus,
)

S = TypeVar("S", bound=Enum)


class StatusMachine(Generic[S]):
    def __init__(self, name: str, transitions: Mapping[S, frozenset[S]]) -> None:
        self.name = name
        self.transitions = transitions

    def allowed_next(self, current: S) -> frozenset[S]:
        return self.transitions.get(current, frozenset())

    def can_transition(self, current: S, requested: S) -> bool:
        if current == requested:
            return True
        return requested in self.allowed_next(current)

    def assert_transition(self, current: S, requested: S) -> None:
        if not self.can_transition(current, requested):
            raise InvalidTransition(self.name, current.value, requested.value)

    def is_terminal(self, state: S) -> bool:
        return not self.allowed_next(state)


SAMPLE_MACHINE: StatusMachine[SampleStatus] = StatusMachine("sample", {
    SampleStatus.RECEIVED: frozenset({
        SampleStatus.IN_STORAGE, SampleStatus.PROCESSING,
        SampleStatus.USED, SampleStatus.DISPOSED,
    }),
    SampleStatus.IN_STORAGE: frozenset({
        SampleStatus.PROCESSING, SampleStatus.USED,
        SampleStatus.DISPOSED, SampleStatus.EXTRACTED,
    }),
    SampleStatus.PROCESSING: frozenset({
        SampleStatus.IN_STORAGE, SampleStatus.EXTRACTED, SampleStatus.USED,
        SampleStatus.DISPOSED, SampleStatus.FAILED,
    }),
    SampleStatus.EXTRACTED: frozenset({
        SampleStatus.IN_STORAGE, SampleStatus.USED, SampleStatus.DISPOSED,
    }),
    SampleStatus.USED: frozenset({SampleStatus.DISPOSED}),
    SampleStatus.DISPOSED: frozenset(),
    SampleStatus.FAILED: frozenset(),
})

TASK_MACHINE: StatusMachine[TaskStatus] = StatusMachine("task", {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}),
    TaskStatus.IN_PROGRESS: frozenset({
        TaskStatus.COMPLETED, TaskStatus.CANCELLED, TaskStatus.PENDING,
    }),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.CANCELLED: frozenset({TaskStatus.PENDING}),
})

EXPERIMENT_MACHINE: StatusMachine[ExperimentStatus] = StatusMachine("experiment", {
    ExperimentStatus.PLANNED: frozenset({
        ExperimentStatus.RUNNING, ExperimentStatus.CANCELLED,
    }),
    ExperimentStatus.RUNNING: frozenset({
        ExperimentStatus.COMPLETED, ExperimentStatus.CANCELLED, ExperimentStatus.PLANNED,
    }),
    ExperimentStatus.COMPLETED: frozenset(),
    ExperimentStatus.CANCELLED: frozenset({ExperimentStatus.PLANNED}),
})


def assert_sample_transition(current: SampleStatus, requested: SampleStatus) -> None:
    SAMPLE_MACHINE.assert_transition(current, requested)


def assert_task_transition(current: TaskStatus, requested: TaskStatus) -> None:
    TASK_MACHINE.assert_transition(current, requested)


def assert_experiment_transition(
    current: ExperimentStatus, requested: ExperimentStatus
) -> None:
    EXPERIMENT_MACHINE.assert_transition(current, requested)


# --- Task progress rules ---

def is_sample_successful(progress: TaskSampleProgress) -> bool:
    """A successful outcome produced viable material."""
    return progress in (TaskSampleProgress.SUCCESSFUL, TaskSampleProgress.EXTRACTED)


def requires_storage(progress: TaskSampleProgress) -> bool:
    return is_sample_successful(progress)


def derive_sample_status(
    progress: TaskSampleProgress, has_storage: bool
) -> SampleStatus:
    """Map a sample's outcome within a task onto its own lifecycle status."""
    if progress == TaskSampleProgress.FAILED:
        return SampleStatus.DISPOSED
    if is_sample_successful(progress):
        return SampleStatus.IN_STORAGE if has_storage else SampleStatus.EXTRACTED
    return SampleStatus.PROCESSING


def is_task_complete(status: TaskStatus) -> bool:
    return status == TaskStatus.COMPLETED
