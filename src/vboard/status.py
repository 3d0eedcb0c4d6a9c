"""
Feature status registry.

The workflow is a closed set of statuses, each bound to one directory under
``features/``, plus a fixed adjacency table of permitted transitions:

    backlog     -> in-progress
    in-progress -> blocked, review
    blocked     -> in-progress
    review      -> in-progress, done
    done        -> (terminal)
"""

from enum import Enum
from typing import Dict, List, Tuple

from vboard.exceptions import InvalidTransitionError, UnknownStatusError


class FeatureStatus(str, Enum):
    """Workflow statuses."""

    BACKLOG = "backlog"
    IN_PROGRESS = "in-progress"
    BLOCKED = "blocked"
    REVIEW = "review"
    DONE = "done"


STATUS_DIRECTORIES: Dict[str, str] = {
    status.value: f"features/{status.value}" for status in FeatureStatus
}

ALLOWED_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    FeatureStatus.BACKLOG.value: (FeatureStatus.IN_PROGRESS.value,),
    FeatureStatus.IN_PROGRESS.value: (
        FeatureStatus.BLOCKED.value,
        FeatureStatus.REVIEW.value,
    ),
    FeatureStatus.BLOCKED.value: (FeatureStatus.IN_PROGRESS.value,),
    FeatureStatus.REVIEW.value: (
        FeatureStatus.IN_PROGRESS.value,
        FeatureStatus.DONE.value,
    ),
    FeatureStatus.DONE.value: (),
}


def normalize_status(status: str) -> str:
    return (status or "").strip().lower()


def directory_for_status(status: str) -> str:
    """Relative directory for a status, or an empty string if unknown."""
    return STATUS_DIRECTORIES.get(normalize_status(status), "")


def valid_statuses() -> List[str]:
    """Sorted list of registered statuses."""
    return sorted(STATUS_DIRECTORIES)


def allowed_transitions(status: str) -> List[str]:
    """Statuses reachable in one hop from ``status``."""
    return list(ALLOWED_TRANSITIONS.get(normalize_status(status), ()))


def validate_status(status: str) -> str:
    """
    Ensure a status is registered.

    Returns:
        The normalized status

    Raises:
        UnknownStatusError: If the status is not registered
    """
    normalized = normalize_status(status)
    if normalized not in STATUS_DIRECTORIES:
        raise UnknownStatusError(status, valid_statuses())
    return normalized


def validate_transition(current: str, target: str) -> str:
    """
    Ensure ``current -> target`` is a permitted single-hop transition.

    Returns:
        The normalized target status

    Raises:
        UnknownStatusError: If the target is not registered
        InvalidTransitionError: If the target is unreachable from current
    """
    current = normalize_status(current)
    target = validate_status(target)

    allowed = ALLOWED_TRANSITIONS.get(current)
    if allowed is None:
        raise InvalidTransitionError(current, target)
    if target not in allowed:
        raise InvalidTransitionError(current, target, allowed)
    return target
