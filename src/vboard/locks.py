"""
Advisory feature locks.

A lock is a small JSON file at ``locks/{id}.lock`` recording who is editing
a feature and for how long. Locks never gate the feature manager; callers
consult them before starting an edit session. Expired locks are detected
when read and are never swept.
"""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from vboard.config import Options
from vboard.exceptions import (
    ActiveLockError,
    InvalidArgumentError,
    MalformedRecordError,
    StorageError,
)
from vboard.fsutil import write_file_atomic
from vboard.logging_config import get_logger

DEFAULT_OWNER = "unassigned"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LockInfo(BaseModel):
    """Lock metadata stored on disk."""

    id: str
    owner: str
    started_at: datetime
    ttl_minutes: int = Field(default=0, ge=0, description="0 disables expiry")

    @property
    def expires_at(self) -> datetime:
        if self.ttl_minutes <= 0:
            return self.started_at
        return self.started_at + timedelta(minutes=self.ttl_minutes)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.ttl_minutes <= 0:
            return False
        now = now or utcnow()
        return now > self.expires_at

    @property
    def expired(self) -> bool:
        return self.is_expired()

    def to_dict(self) -> dict:
        """Payload for presentation, including computed expiry."""
        return {
            "id": self.id,
            "owner": self.owner,
            "ttl_minutes": self.ttl_minutes,
            "started_at": self.started_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "expired": self.expired,
        }


class LockManager:
    """Creates, reads and releases advisory locks."""

    def __init__(self, options: Options):
        self.options = options
        self.log = get_logger("lock")

    def path(self, feature_id: str) -> Path:
        return self.options.locks_dir / f"{feature_id}.lock"

    def load(self, feature_id: str) -> Optional[LockInfo]:
        """
        Read lock metadata without side effects.

        Returns:
            LockInfo, or None if no lock file exists

        Raises:
            MalformedRecordError: If the lock file cannot be decoded
            StorageError: If the lock file cannot be read
        """
        path = self.path(feature_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"failed to read lock file {path}", path=path, details=str(e)) from e

        try:
            info = LockInfo.model_validate_json(raw)
        except ValidationError as e:
            raise MalformedRecordError(path, f"failed to parse lock file: {e}") from e
        if info.started_at.tzinfo is None:
            info = info.model_copy(update={"started_at": info.started_at.replace(tzinfo=timezone.utc)})
        return info

    def acquire(
        self, feature_id: str, owner: str = "", ttl_minutes: int = 30, force: bool = False
    ) -> LockInfo:
        """
        Create or refresh a lock.

        Args:
            feature_id: Feature to lock
            owner: Lock holder (blank becomes "unassigned")
            ttl_minutes: Lifetime in minutes, must be positive
            force: Overwrite an active lock held by anyone

        Returns:
            The written LockInfo

        Raises:
            InvalidArgumentError: If ttl_minutes is not positive
            ActiveLockError: If an unexpired lock exists and force is False
        """
        if ttl_minutes <= 0:
            raise InvalidArgumentError("ttl must be positive", argument="ttl_minutes")
        owner = owner.strip() if owner else ""
        owner = owner or DEFAULT_OWNER

        existing = self.load(feature_id)
        if existing is not None and not existing.expired and not force:
            raise ActiveLockError(feature_id, existing.owner)

        info = LockInfo(
            id=feature_id,
            owner=owner,
            started_at=utcnow(),
            ttl_minutes=ttl_minutes,
        )

        path = self.path(feature_id)
        if self.options.dry_run:
            self.log.info(
                "Skipping lock write in dry-run mode",
                extra={"action": "lock", "id": feature_id, "path": path, "dry_run": True},
            )
            return info

        payload = info.model_dump_json(indent=2)
        try:
            write_file_atomic(path, payload + "\n")
        except OSError as e:
            raise StorageError(f"failed to write lock file {path}", path=path, details=str(e)) from e

        self.log.info(
            "Lock created/updated",
            extra={"action": "lock", "id": feature_id, "owner": owner, "path": path},
        )
        return info

    def release(self, feature_id: str) -> None:
        """Remove a lock. Releasing a missing lock is not an error."""
        path = self.path(feature_id)
        if self.options.dry_run:
            self.log.info(
                "Skipping lock removal in dry-run mode",
                extra={"action": "unlock", "id": feature_id, "path": path, "dry_run": True},
            )
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"failed to remove lock file {path}", path=path, details=str(e)) from e
        self.log.info("Lock released", extra={"action": "unlock", "id": feature_id, "path": path})
