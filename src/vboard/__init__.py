"""
vboard: feature lifecycle and validation engine

Tracks feature work items as Markdown files with YAML front matter under
``features/{status}/`` and enforces the workflow and dependency rules for
moving them between statuses.

Architecture Overview:
    - FeatureManager: create, load, move, update, delete and list features
    - Validator: schema, directory, filename and dependency graph checks
    - LockManager: advisory TTL locks under ``locks/``
    - TemplateProcessor: fills missing sections from ``templates/spec.md``
    - Options: workspace root and dry-run mode, passed to every component
"""

try:
    from importlib.metadata import version
    __version__ = version("vboard")
except Exception:
    __version__ = "0.0.0"  # Fallback for development

from vboard.config import Options
from vboard.exceptions import VBoardError
from vboard.locks import LockInfo, LockManager
from vboard.manager import FeatureManager, MoveResult, ScanResult
from vboard.model import Feature, FrontMatter, parse
from vboard.status import FeatureStatus, validate_status, validate_transition
from vboard.template import TemplateProcessor
from vboard.validator import ValidationResult, ValidationSummary, Validator

__all__ = [
    "__version__",
    "Feature",
    "FeatureManager",
    "FeatureStatus",
    "FrontMatter",
    "LockInfo",
    "LockManager",
    "MoveResult",
    "Options",
    "ScanResult",
    "TemplateProcessor",
    "ValidationResult",
    "ValidationSummary",
    "Validator",
    "VBoardError",
    "parse",
    "validate_status",
    "validate_transition",
]
