"""
vboard Exceptions

Typed errors raised by the feature engine. Every error carries a
human-readable message, an optional remediation hint and an exit code the
command layer uses when the error escapes to the shell.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Tuple

EXIT_SUCCESS = 0
EXIT_VALIDATION = 1
EXIT_NOT_FOUND = 2
EXIT_INVALID_TRANSITION = 3
EXIT_DEPENDENCY = 4
EXIT_LOCK_CONFLICT = 5
EXIT_FILESYSTEM = 6
EXIT_SCHEMA = 7
EXIT_UNKNOWN = 10


class VBoardError(Exception):
    """Base exception for all vboard errors."""

    exit_code = EXIT_UNKNOWN

    def __init__(
        self,
        message: str,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        """Initialize the error.

        Args:
            message: Human-readable error message
            remediation: Suggested fix for the user
            details: Technical details for debugging
        """
        super().__init__(message)
        self.message = message
        self.remediation = remediation
        self.details = details

    def __str__(self) -> str:
        parts = [self.message]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.remediation:
            parts.append(f"To fix: {self.remediation}")
        return "\n".join(parts)


class ConfigError(VBoardError):
    """Workspace or configuration could not be resolved."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.config_key = config_key
        if not remediation and config_key:
            remediation = f"Check '{config_key}' in config.yaml, .env or the command flags"
        super().__init__(message, remediation, details)


class InvalidArgumentError(VBoardError):
    """A caller supplied an argument outside its allowed range."""

    exit_code = EXIT_VALIDATION

    def __init__(
        self,
        message: str,
        argument: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.argument = argument
        super().__init__(message, remediation, details)


class NotFoundError(VBoardError):
    """A feature id (or a section inside it) could not be resolved."""

    exit_code = EXIT_NOT_FOUND

    def __init__(
        self,
        feature_id: str,
        message: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.feature_id = feature_id
        super().__init__(message or f"feature not found: {feature_id}", remediation, details)


class UnknownStatusError(VBoardError):
    """Status is not one of the registered workflow statuses."""

    exit_code = EXIT_INVALID_TRANSITION

    def __init__(self, status: str, valid: Sequence[str] = ()):
        self.status = status
        remediation = None
        if valid:
            remediation = f"Use one of: {', '.join(valid)}"
        super().__init__(f"invalid status '{status}'", remediation)


class InvalidTransitionError(VBoardError):
    """The workflow does not allow moving between the two statuses."""

    exit_code = EXIT_INVALID_TRANSITION

    def __init__(self, current: str, target: str, allowed: Sequence[str] = ()):
        self.current = current
        self.target = target
        self.allowed = list(allowed)
        if allowed:
            message = f"invalid status transition: cannot transition from {current} to {target}"
            remediation = f"From {current} you can move to: {', '.join(allowed)}"
        else:
            message = f"invalid status transition: cannot transition from {current}"
            remediation = None
        super().__init__(message, remediation)


class DependencyBlockedError(VBoardError):
    """A dependency is missing or not done while entering in-progress."""

    exit_code = EXIT_DEPENDENCY

    def __init__(
        self,
        feature_id: str,
        dependency: str,
        dependency_status: Optional[str] = None,
        message: Optional[str] = None
    ):
        self.feature_id = feature_id
        self.dependency = dependency
        self.dependency_status = dependency_status
        if not message and dependency_status is None:
            message = f"dependency not satisfied: dependency {dependency} missing"
        elif not message:
            message = (
                f"dependency not satisfied: dependency {dependency} is not done "
                f"(status: {dependency_status})"
            )
        super().__init__(message, f"Move {dependency} to done before starting {feature_id}")


class ActiveLockError(VBoardError):
    """Another owner holds an unexpired lock on the feature."""

    exit_code = EXIT_LOCK_CONFLICT

    def __init__(self, feature_id: str, owner: str):
        self.feature_id = feature_id
        self.owner = owner
        super().__init__(
            f"lock already active: active owner {owner}",
            "Wait for the lock to expire or pass --force to override it",
        )


class StorageError(VBoardError):
    """Filesystem operation failed. The original OSError is chained."""

    exit_code = EXIT_FILESYSTEM

    def __init__(
        self,
        message: str,
        path: Optional[Path] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.path = path
        super().__init__(message, remediation, details)


class MalformedRecordError(VBoardError):
    """A feature or lock file could not be decoded."""

    exit_code = EXIT_FILESYSTEM

    def __init__(self, path: Optional[Path], reason: str):
        self.path = path
        self.reason = reason
        location = f" ({path})" if path else ""
        super().__init__(f"invalid feature spec{location}: {reason}")


class FeatureParseErrors(VBoardError):
    """One or more files failed to parse during a bulk listing.

    Carries every failure together with the features that did parse, so the
    caller can decide whether a partial listing is acceptable.
    """

    exit_code = EXIT_FILESYSTEM

    def __init__(self, failures: List[MalformedRecordError], features: Optional[list] = None):
        self.failures = list(failures)
        self.features = list(features or [])
        lines = [f"{f.path}: {f.reason}" for f in self.failures]
        super().__init__(
            f"{len(self.failures)} feature file(s) could not be parsed",
            "Fix or remove the listed files",
            "\n".join(lines),
        )


class SchemaUnavailableError(VBoardError):
    """The front matter schema itself is missing or unreadable."""

    exit_code = EXIT_SCHEMA

    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(
            f"schema unavailable at {path}: {reason}",
            "Restore schemas/frontmatter.schema.json in the workspace",
        )


class SchemaViolationError(VBoardError):
    """A front matter field failed schema validation."""

    exit_code = EXIT_SCHEMA

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class DuplicateIdError(VBoardError):
    """More than one document shares the same id."""

    exit_code = EXIT_VALIDATION

    def __init__(self, feature_id: str, paths: Sequence[Path] = ()):
        self.feature_id = feature_id
        self.paths = list(paths)
        super().__init__(f"duplicate ID detected for {feature_id}")


class CircularDependencyError(VBoardError):
    """The dependency graph contains a cycle through this feature."""

    exit_code = EXIT_VALIDATION

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__("circular dependency detected: " + " -> ".join(self.cycle))


class ValidationIssue(VBoardError):
    """Generic single-record validation finding (directory, filename, dates)."""

    exit_code = EXIT_VALIDATION


class ValidationFailed(VBoardError):
    """Raised on request when a validation run found invalid features."""

    exit_code = EXIT_VALIDATION

    def __init__(self, error_counts: List[Tuple[str, int]]):
        self.error_counts = list(error_counts)
        parts = [f"{fid} ({count} errors)" for fid, count in self.error_counts]
        super().__init__("; ".join(parts))


def exit_code_for(error: BaseException) -> int:
    """Map any exception to a process exit code."""
    if isinstance(error, VBoardError):
        return error.exit_code
    if isinstance(error, OSError):
        return EXIT_FILESYSTEM
    return EXIT_UNKNOWN
