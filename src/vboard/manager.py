"""
Feature Manager

Owns on-disk placement of feature files under ``features/{status}/``.
Callers go through this class for every create, move, update and delete;
nothing else writes feature files.

Usage:
    from vboard.config import Options
    from vboard.manager import FeatureManager

    manager = FeatureManager(Options.init())
    feature = manager.create_feature("Alpha", ["api"])
    result = manager.move_feature(feature.id, "in-progress", owner="sam")
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from vboard.config import Options
from vboard.exceptions import (
    DependencyBlockedError,
    FeatureParseErrors,
    MalformedRecordError,
    NotFoundError,
    StorageError,
)
from vboard.fsutil import slugify, write_file_atomic
from vboard.logging_config import get_logger
from vboard.model import Feature, normalize_list, parse, today
from vboard.status import (
    FeatureStatus,
    directory_for_status,
    normalize_status,
    validate_transition,
)

TEMPLATE_FILE = "spec.md"
SCHEMA_FILE = "frontmatter.schema.json"
TITLE_PLACEHOLDER = "<Feature Title>"
DEFAULT_OWNER = "unassigned"
NON_FEATURE_FILES = ("index.md", "readme.md")


@dataclass
class MoveResult:
    """Outcome of a status move.

    ``warnings`` collects non-fatal problems such as a stale copy left at the
    old path; the move itself succeeded whenever a MoveResult is returned.
    """

    feature: Feature
    summary: str
    previous_path: Path
    warnings: List[str] = field(default_factory=list)


@dataclass
class ScanResult:
    """Every parseable feature plus the files that failed to parse."""

    features: List[Feature] = field(default_factory=list)
    failures: List[MalformedRecordError] = field(default_factory=list)


class FeatureManager:
    """Feature file operations for one workspace."""

    def __init__(self, options: Options):
        self.options = options
        self.log = get_logger("feature")
        self._id_pattern = re.compile(rf"{re.escape(options.id_prefix)}-(\d+)", re.IGNORECASE)

    @property
    def features_dir(self) -> Path:
        return self.options.features_dir

    @property
    def template_path(self) -> Path:
        return self.options.templates_dir / TEMPLATE_FILE

    @property
    def schema_path(self) -> Path:
        return self.options.schemas_dir / SCHEMA_FILE

    @property
    def locks_dir(self) -> Path:
        return self.options.locks_dir

    def format_id(self, number: int) -> str:
        return f"{self.options.id_prefix}-{number:04d}"

    def _walk_files(self) -> List[Path]:
        if not self.features_dir.is_dir():
            return []
        files = []
        for dirpath, dirnames, filenames in os.walk(self.features_dir):
            dirnames.sort()
            for name in sorted(filenames):
                if name.startswith("."):
                    continue
                files.append(Path(dirpath) / name)
        return files

    def next_id(self) -> str:
        """Next free id: one past the highest id found in any filename."""
        max_id = 0
        for path in self._walk_files():
            match = self._id_pattern.search(path.name)
            if match:
                max_id = max(max_id, int(match.group(1)))
        return self.format_id(max_id + 1)

    def collect_candidates(self) -> List[Path]:
        """Feature files under ``features/``, skipping generated index files."""
        return [
            path
            for path in self._walk_files()
            if path.suffix == ".md" and path.name.lower() not in NON_FEATURE_FILES
        ]

    def _read(self, path: Path) -> Feature:
        try:
            data = path.read_bytes()
        except OSError as e:
            raise StorageError(f"failed to read feature {path}", path=path, details=str(e)) from e
        return parse(path, data)

    def find_by_id(self, feature_id: str) -> Path:
        """
        Locate the file for a feature id.

        Matches ``{id}-`` as a case-insensitive filename prefix.

        Raises:
            NotFoundError: If the features tree is absent or nothing matches
        """
        prefix = f"{feature_id.strip().upper()}-"
        for path in self._walk_files():
            if path.suffix == ".md" and path.name.upper().startswith(prefix):
                return path
        raise NotFoundError(feature_id)

    def load_by_id(self, feature_id: str) -> Feature:
        return self._read(self.find_by_id(feature_id))

    def save(self, feature: Feature) -> None:
        """Persist a feature at ``feature.path`` (skipped in dry-run mode)."""
        data = feature.encode()
        if self.options.dry_run:
            self.log.info(
                "Skipping write in dry-run mode",
                extra={"action": "save", "path": feature.path, "dry_run": True},
            )
            return
        try:
            write_file_atomic(feature.path, data)
        except OSError as e:
            raise StorageError(
                f"failed to write feature {feature.path}", path=feature.path, details=str(e)
            ) from e
        feature.raw_header = feature.front_matter.to_dict()

    def create_feature(self, title: str, labels: Optional[Sequence[str]] = None) -> Feature:
        """
        Create a backlog feature from the canonical template.

        Args:
            title: Feature title
            labels: Optional labels

        Returns:
            The new Feature

        Raises:
            StorageError: If the template cannot be read or the file written
            MalformedRecordError: If the template itself is malformed
        """
        try:
            template_data = self.template_path.read_bytes()
        except OSError as e:
            raise StorageError(
                "failed to read template",
                path=self.template_path,
                remediation="Restore templates/spec.md in the workspace",
                details=str(e),
            ) from e

        feature_id = self.next_id()
        path = self.features_dir / FeatureStatus.BACKLOG.value / f"{feature_id}-{slugify(title)}.md"
        stamp = today()

        feature = parse(path, template_data)
        fm = feature.front_matter
        fm.id = feature_id
        fm.title = title
        fm.status = FeatureStatus.BACKLOG.value
        fm.owner = DEFAULT_OWNER
        fm.created = stamp
        fm.updated = stamp
        fm.labels = normalize_list(list(labels or []))
        feature.body = feature.body.replace(TITLE_PLACEHOLDER, title)

        self.save(feature)

        self.log.info(
            "Feature created",
            extra={"action": "new", "id": feature_id, "path": path, "dry_run": self.options.dry_run},
        )
        return feature

    def update_feature(self, feature: Feature) -> None:
        """Stamp ``updated`` and persist in place."""
        feature.touch()
        self.save(feature)
        self.log.info(
            "Feature updated",
            extra={"action": "update", "id": feature.id, "path": feature.path},
        )

    def move_feature(self, feature_id: str, new_status: str, owner: str = "") -> MoveResult:
        """
        Move a feature to a new status directory.

        The record is written at its destination before the old file is
        removed, so it is always readable at one of the two paths with a
        consistent status.

        Args:
            feature_id: Feature to move
            new_status: Target status
            owner: New owner; blank keeps the current one

        Returns:
            MoveResult with the updated feature and any cleanup warnings

        Raises:
            NotFoundError: If the feature does not exist
            UnknownStatusError: If the target status is not registered
            InvalidTransitionError: If the workflow forbids the move
            DependencyBlockedError: If entering in-progress with unmet dependencies
            StorageError: If the destination write fails
        """
        feature = self.load_by_id(feature_id)
        current = normalize_status(feature.status)
        target = validate_transition(current, new_status)
        self.verify_dependencies(feature, target)

        fm = feature.front_matter
        fm.status = target
        if owner and owner.strip():
            fm.owner = owner.strip()
        elif not fm.owner:
            fm.owner = DEFAULT_OWNER
        feature.touch()

        new_dir = self.options.root_dir / directory_for_status(target)
        old_path = feature.path
        new_path = new_dir / old_path.name
        feature.path = new_path
        warnings: List[str] = []

        self.save(feature)

        if new_path != old_path and not self.options.dry_run:
            try:
                os.remove(old_path)
            except OSError as e:
                message = f"failed to remove old feature file {old_path}: {e}"
                warnings.append(message)
                self.log.warning(
                    "Failed to remove old feature file: %s",
                    e,
                    extra={"action": "move", "id": fm.id, "path": old_path},
                )

        summary = f"Moved {fm.id} to {target}"
        self.log.info(
            "Feature moved",
            extra={
                "action": "move",
                "id": fm.id,
                "from_status": current,
                "to_status": target,
                "owner": fm.owner,
                "path": new_path,
                "dry_run": self.options.dry_run,
            },
        )
        return MoveResult(feature=feature, summary=summary, previous_path=old_path, warnings=warnings)

    def verify_dependencies(self, feature: Feature, target: str) -> None:
        """Entering in-progress requires every dependency to be done."""
        if normalize_status(target) != FeatureStatus.IN_PROGRESS.value:
            return
        for dep in feature.front_matter.dependencies:
            dep = dep.strip()
            if not dep:
                continue
            try:
                dep_feature = self.load_by_id(dep)
            except NotFoundError as e:
                raise DependencyBlockedError(feature.id, dep) from e
            if normalize_status(dep_feature.status) != FeatureStatus.DONE.value:
                raise DependencyBlockedError(feature.id, dep, dep_feature.status)

    def delete_feature(self, feature_id: str) -> Path:
        """
        Remove a feature file.

        Returns:
            The resolved path (also in dry-run mode, where nothing is removed)
        """
        path = self.find_by_id(feature_id)
        if self.options.dry_run:
            self.log.info(
                "Skipping delete in dry-run mode",
                extra={"action": "delete", "id": feature_id, "path": path, "dry_run": True},
            )
            return path
        try:
            os.remove(path)
        except OSError as e:
            raise StorageError(f"failed to delete feature {path}", path=path, details=str(e)) from e
        self.log.info("Feature deleted", extra={"action": "delete", "id": feature_id, "path": path})
        return path

    def scan(self) -> ScanResult:
        """Parse every candidate file, collecting failures instead of stopping."""
        result = ScanResult()
        for path in self.collect_candidates():
            try:
                result.features.append(self._read(path))
            except MalformedRecordError as e:
                result.failures.append(e)
            except StorageError as e:
                result.failures.append(MalformedRecordError(path, e.details or e.message))
        result.features.sort(key=lambda f: (f.id, str(f.path)))
        return result

    def list_features(self) -> List[Feature]:
        """
        All features sorted by id.

        Raises:
            FeatureParseErrors: If any file failed to parse; the parsed
                features are available on the exception
        """
        result = self.scan()
        if result.failures:
            raise FeatureParseErrors(result.failures, result.features)
        return result.features
