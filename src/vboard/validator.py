"""
Feature Validator

Checks every feature file (or one feature and its direct dependencies)
against the front matter schema, the workflow directory layout, the
filename convention and the dependency graph.

Validation findings are data: each document gets a ValidationResult whose
``issues`` are typed errors. Only infrastructure problems (an unreadable
schema) raise.

Usage:
    validator = Validator(manager)
    summary = validator.validate_all()
    for result in summary.invalid_results():
        print(result.feature_id, result.errors)
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

from vboard.exceptions import (
    CircularDependencyError,
    DependencyBlockedError,
    DuplicateIdError,
    MalformedRecordError,
    NotFoundError,
    SchemaUnavailableError,
    SchemaViolationError,
    StorageError,
    ValidationFailed,
    ValidationIssue,
    VBoardError,
)
from vboard.fsutil import slugify
from vboard.logging_config import get_logger
from vboard.manager import FeatureManager
from vboard.model import DATE_FORMAT, Feature
from vboard.status import FeatureStatus, directory_for_status, normalize_status

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class ValidationResult:
    """Validation outcome for one document."""

    feature_id: str
    path: Path
    feature: Optional[Feature] = None
    issues: List[VBoardError] = field(default_factory=list)

    @property
    def errors(self) -> List[str]:
        return [issue.message for issue in self.issues]

    @property
    def valid(self) -> bool:
        return not self.issues

    def __bool__(self) -> bool:
        return self.valid

    def add(self, issue: VBoardError) -> None:
        self.issues.append(issue)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.feature_id,
            "path": str(self.path),
            "valid": self.valid,
            "errors": self.errors,
        }


@dataclass
class ValidationSummary:
    """Aggregated results of a full validation run."""

    total: int = 0
    valid: int = 0
    invalid: int = 0
    error_counts: Dict[str, int] = field(default_factory=dict)
    results: List[ValidationResult] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return self.invalid > 0

    def invalid_results(self) -> List[ValidationResult]:
        return [r for r in self.results if not r.valid]

    def errors_by_id(self) -> Dict[str, List[str]]:
        """Error messages grouped by feature id (duplicates merged)."""
        grouped: Dict[str, List[str]] = {}
        for result in self.results:
            if result.issues:
                grouped.setdefault(result.feature_id, []).extend(result.errors)
        return grouped

    def results_for(self, feature_id: str) -> List[ValidationResult]:
        return [r for r in self.results if r.feature_id == feature_id]

    def error(self) -> Optional[ValidationFailed]:
        """A ValidationFailed describing invalid ids, or None."""
        if not self.has_errors:
            return None
        return ValidationFailed(sorted(self.error_counts.items()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "valid": self.valid,
            "invalid": self.invalid,
            "error_counts": dict(self.error_counts),
            "results": [r.to_dict() for r in self.results],
        }


class _NodeState(Enum):
    UNVISITED = 0
    ON_STACK = 1
    DONE = 2


def find_cycles(graph: Dict[str, Sequence[str]]) -> List[List[str]]:
    """
    Find dependency cycles with an iterative depth-first search.

    Each cycle is returned in traversal order with the repeated node at both
    ends, e.g. ``["A", "B", "C", "A"]``. A cycle reachable from several entry
    points is reported once.

    Args:
        graph: Mapping of node id to the ids it depends on

    Returns:
        List of cycles
    """
    state: Dict[str, _NodeState] = {node: _NodeState.UNVISITED for node in graph}
    cycles: List[List[str]] = []
    seen_keys = set()

    for root in sorted(graph):
        if state[root] is not _NodeState.UNVISITED:
            continue

        path: List[str] = [root]
        frames = [(root, iter(graph.get(root, ())))]
        state[root] = _NodeState.ON_STACK

        while frames:
            node, neighbours = frames[-1]
            advanced = False
            for dep in neighbours:
                dep_state = state.get(dep)
                if dep_state is None:
                    # Dependency outside the graph (missing); reported elsewhere
                    continue
                if dep_state is _NodeState.UNVISITED:
                    state[dep] = _NodeState.ON_STACK
                    path.append(dep)
                    frames.append((dep, iter(graph.get(dep, ()))))
                    advanced = True
                    break
                if dep_state is _NodeState.ON_STACK:
                    start = len(path) - 1 - path[::-1].index(dep)
                    cycle = path[start:] + [dep]
                    key = _cycle_key(cycle[:-1])
                    if key not in seen_keys:
                        seen_keys.add(key)
                        cycles.append(cycle)
            if not advanced:
                frames.pop()
                path.pop()
                state[node] = _NodeState.DONE

    return cycles


def _cycle_key(nodes: List[str]) -> str:
    """Rotation-independent key for a cycle."""
    pivot = nodes.index(min(nodes))
    return "->".join(nodes[pivot:] + nodes[:pivot])


def _parse_date(value: str) -> bool:
    if not _DATE_PATTERN.match(value or ""):
        return False
    try:
        datetime.strptime(value, DATE_FORMAT)
    except (TypeError, ValueError):
        return False
    return True


class Validator:
    """Runs schema, workflow and dependency checks."""

    def __init__(self, manager: FeatureManager, schema_path: Optional[Path] = None):
        self.manager = manager
        self.log = get_logger("validator")
        self.schema_path = schema_path or manager.schema_path
        self._schema = self._load_schema(self.schema_path)

    @staticmethod
    def _load_schema(path: Path) -> Draft7Validator:
        try:
            with open(path, "r", encoding="utf-8") as f:
                schema = json.load(f)
        except OSError as e:
            raise SchemaUnavailableError(path, str(e)) from e
        except json.JSONDecodeError as e:
            raise SchemaUnavailableError(path, f"invalid JSON: {e}") from e
        try:
            Draft7Validator.check_schema(schema)
        except SchemaError as e:
            raise SchemaUnavailableError(path, f"invalid schema: {e.message}") from e
        return Draft7Validator(schema)

    def validate_all(self) -> ValidationSummary:
        """Validate every feature file in the workspace."""
        scan = self.manager.scan()
        results: List[ValidationResult] = []

        for failure in scan.failures:
            result = ValidationResult(feature_id=Path(failure.path).name, path=Path(failure.path))
            result.add(failure)
            results.append(result)

        by_id: Dict[str, List[ValidationResult]] = {}
        for feature in scan.features:
            result = self.validate_single(feature)
            results.append(result)
            by_id.setdefault(_normalize_id(feature.id), []).append(result)

        for feature_id, group in by_id.items():
            if len(group) > 1:
                paths = [r.path for r in group]
                for result in group:
                    result.add(DuplicateIdError(feature_id, paths))

        self.apply_dependency_checks(by_id)

        summary = ValidationSummary(total=len(results), results=results)
        for result in results:
            if result.valid:
                summary.valid += 1
            else:
                summary.invalid += 1
                summary.error_counts[result.feature_id] = (
                    summary.error_counts.get(result.feature_id, 0) + len(result.issues)
                )

        if summary.invalid:
            self.log.warning("Validation found issues", extra={"action": "validate"})
        else:
            self.log.info("Validation passed (%d features)", summary.total, extra={"action": "validate"})
        return summary

    def validate_one(self, feature_id: str) -> ValidationResult:
        """
        Validate one feature plus dependency checks against its direct dependencies.

        A dependency file that cannot be read is reported on the result
        instead of being treated as missing.

        Raises:
            NotFoundError: If the feature does not exist
        """
        feature = self.manager.load_by_id(feature_id)
        result = self.validate_single(feature)

        groups: Dict[str, List[ValidationResult]] = {_normalize_id(feature.id): [result]}
        for dep in feature.front_matter.dependencies:
            dep = _normalize_id(dep)
            if not dep or dep in groups:
                continue
            try:
                dep_feature = self.manager.load_by_id(dep)
            except NotFoundError:
                continue
            except (MalformedRecordError, StorageError) as e:
                result.add(e)
                groups[dep] = [ValidationResult(dep, Path(e.path) if e.path else result.path)]
                continue
            # Dependencies only supply status and edges; their own findings are discarded
            groups[dep] = [ValidationResult(dep_feature.id, dep_feature.path, dep_feature)]

        self.apply_dependency_checks(groups)
        return result

    def validate_single(self, feature: Feature) -> ValidationResult:
        """Schema, directory, filename and date checks for one feature."""
        fm = feature.front_matter
        result = ValidationResult(feature_id=fm.id, path=feature.path, feature=feature)

        document = feature.raw_header if feature.raw_header is not None else fm.to_dict()
        errors = self._schema.iter_errors(document)
        for err in sorted(errors, key=lambda e: ([str(p) for p in e.path], e.message)):
            location = ".".join(str(p) for p in err.path) or "(root)"
            result.add(SchemaViolationError(f"{location}: {err.message}", field=location))

        status_dir = directory_for_status(fm.status)
        if not status_dir:
            result.add(ValidationIssue(f"invalid status {fm.status}"))
        else:
            expected_dir = self.manager.options.root_dir / status_dir
            actual_dir = feature.path.parent
            if str(expected_dir.resolve()).lower() != str(actual_dir.resolve()).lower():
                result.add(ValidationIssue(f"status '{fm.status}' requires directory {expected_dir}"))

        expected_name = f"{fm.id}-{slugify(fm.title)}.md"
        if feature.path.name.lower() != expected_name.lower():
            result.add(ValidationIssue(f"filename '{feature.path.name}' should be '{expected_name}'"))

        if not _parse_date(fm.created):
            result.add(ValidationIssue("created date must be YYYY-MM-DD"))
        if not _parse_date(fm.updated):
            result.add(ValidationIssue("updated date must be YYYY-MM-DD"))

        return result

    def apply_dependency_checks(self, groups: Dict[str, List[ValidationResult]]) -> None:
        """
        Missing-dependency, in-progress precondition and cycle checks.

        ``groups`` maps each id to every document carrying it; no document is
        treated as the primary one, so a duplicated id contributes the union
        of its documents' dependencies.
        """
        done = FeatureStatus.DONE.value
        in_progress = FeatureStatus.IN_PROGRESS.value

        def is_done(feature_id: str) -> bool:
            return all(
                r.feature is not None and normalize_status(r.feature.status) == done
                for r in groups[feature_id]
            )

        graph: Dict[str, List[str]] = {}
        for feature_id, group in groups.items():
            edges: List[str] = []
            for result in group:
                if result.feature is None:
                    continue
                for dep in result.feature.front_matter.dependencies:
                    dep = _normalize_id(dep)
                    if not dep:
                        continue
                    if dep not in edges:
                        edges.append(dep)
                    if dep not in groups:
                        result.add(NotFoundError(dep, f"dependency {dep} not found"))
                        continue
                    if not any(r.feature is not None for r in groups[dep]):
                        # Unreadable dependency, already reported
                        continue
                    if normalize_status(result.feature.status) == in_progress and not is_done(dep):
                        result.add(DependencyBlockedError(
                            feature_id,
                            dep,
                            _status_of(groups[dep]),
                            message=f"dependency {dep} must be done before moving to in-progress",
                        ))
            graph[feature_id] = edges

        for cycle in find_cycles(graph):
            for feature_id in dict.fromkeys(cycle):
                for result in groups.get(feature_id, ()):
                    result.add(CircularDependencyError(cycle))

    def collect_features(self, *ids: str) -> List[Feature]:
        """Features selected for the fix workflow (all when no ids are given)."""
        if not ids:
            return self.manager.list_features()
        return [self.manager.load_by_id(feature_id) for feature_id in ids]

    def apply_fixes(
        self,
        features: Iterable[Feature],
        processor: Union[Callable[[Feature], Any], Any],
    ) -> List[Feature]:
        """
        Re-apply the template to each feature and persist it.

        Does not re-run validation.

        Args:
            features: Features to fix
            processor: Object with ``apply(feature)`` or a plain callable

        Returns:
            The fixed features
        """
        apply = processor.apply if hasattr(processor, "apply") else processor
        fixed = []
        for feature in features:
            apply(feature)
            self.manager.save(feature)
            self.log.info(
                "Applied template fixes",
                extra={"action": "fix", "id": feature.id, "path": feature.path},
            )
            fixed.append(feature)
        return fixed


def _status_of(group: List[ValidationResult]) -> Optional[str]:
    for result in group:
        if result.feature is not None:
            return result.feature.status
    return None


def _normalize_id(feature_id: str) -> str:
    return (feature_id or "").strip().upper()
