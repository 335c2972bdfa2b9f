"""
Job lifecycle: pending -> running -> {completed | failed | cancelled}.
"""

from typing import List

from core.errors import InvalidTransition
from core.schemas.enums import JobStatus

TERMINAL_STATES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})

TRANSITIONS = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING}),
    JobStatus.RUNNING: TERMINAL_STATES,
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


def is_terminal(status: JobStatus) -> bool:
    return JobStatus(status) in TERMINAL_STATES


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return JobStatus(target) in TRANSITIONS[JobStatus(current)]


def ensure_transition(current: JobStatus, target: JobStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(JobStatus(current).value, JobStatus(target).value)


def sources_for(target: JobStatus) -> List[JobStatus]:
    """States from which `target` may be entered, used as a conditional-update filter."""
    return [state for state, targets in TRANSITIONS.items() if JobStatus(target) in targets]
