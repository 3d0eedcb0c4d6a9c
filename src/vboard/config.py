"""
vboard Configuration

Resolves the workspace root and run-wide flags into an ``Options`` object
that is handed to every component's constructor.

Resolution order (highest wins):
    1. explicit arguments to ``Options.init``
    2. process environment (VB_ROOT, VB_DRY_RUN, VB_ID_PREFIX)
    3. a ``.env`` file in the starting directory
    4. ``config.yaml`` in the resolved workspace (id_prefix only)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import dotenv_values

from vboard.exceptions import ConfigError

logger = logging.getLogger(__name__)

WORKSPACE_DIR = ".virtualboard"
CONFIG_FILE = "config.yaml"
DEFAULT_ID_PREFIX = "FTR"

_TRUTHY = ("1", "true", "yes", "on")


def _is_truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def _environment(start: Path) -> Dict[str, Optional[str]]:
    """Merge ``.env`` values with the process environment."""
    values: Dict[str, Optional[str]] = {}
    env_file = start / ".env"
    if env_file.is_file():
        values.update(dotenv_values(env_file))
    values.update({k: v for k, v in os.environ.items() if k.startswith("VB_")})
    return values


def resolve_workspace(root: Path) -> Path:
    """Locate the workspace directory below ``root``.

    Prefers ``{root}/.virtualboard``; falls back to ``{root}/src`` when that
    holds the features tree and ``root`` does not.
    """
    if root.name != WORKSPACE_DIR:
        workspace = root / WORKSPACE_DIR
        if workspace.is_dir():
            return workspace

    if not (root / "features").exists():
        alt = root / "src"
        if (alt / "features").is_dir():
            return alt

    return root


def _load_file_config(root: Path) -> Dict[str, Any]:
    config_path = root / CONFIG_FILE
    if not config_path.is_file():
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(
            f"Failed to read {config_path}", details=str(e)
        ) from e
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")
    return data


@dataclass
class Options:
    """Run-wide settings shared by all components."""

    root_dir: Path
    dry_run: bool = False
    json_output: bool = False
    verbose: bool = False
    log_file: Optional[Path] = None
    id_prefix: str = DEFAULT_ID_PREFIX

    @classmethod
    def init(
        cls,
        root: Optional[Path] = None,
        dry_run: Optional[bool] = None,
        json_output: bool = False,
        verbose: bool = False,
        log_file: Optional[Path] = None,
        id_prefix: Optional[str] = None,
    ) -> "Options":
        """
        Build Options from arguments, environment and workspace config.

        Args:
            root: Starting directory (default: VB_ROOT or the current directory)
            dry_run: Override for dry-run mode (default: VB_DRY_RUN)
            json_output: Emit machine-readable output
            verbose: Enable informational logging
            log_file: Optional log file path
            id_prefix: Override for the feature id prefix

        Returns:
            Resolved Options

        Raises:
            ConfigError: If the root directory does not exist
        """
        start = Path.cwd()
        env = _environment(start)

        if root is None and env.get("VB_ROOT"):
            root = Path(env["VB_ROOT"]).expanduser()
        root = Path(root) if root is not None else start

        try:
            abs_root = root.resolve(strict=True)
        except OSError as e:
            raise ConfigError(
                f"root path invalid: {root}", config_key="VB_ROOT", details=str(e)
            ) from e

        if not abs_root.is_dir():
            raise ConfigError(f"root path is not a directory: {abs_root}", config_key="VB_ROOT")

        workspace = resolve_workspace(abs_root)
        file_config = _load_file_config(workspace)

        if dry_run is None:
            dry_run = _is_truthy(env.get("VB_DRY_RUN"))

        prefix = (
            id_prefix
            or env.get("VB_ID_PREFIX")
            or file_config.get("id_prefix")
            or DEFAULT_ID_PREFIX
        )

        opts = cls(
            root_dir=workspace,
            dry_run=bool(dry_run),
            json_output=json_output,
            verbose=verbose,
            log_file=Path(log_file) if log_file else None,
            id_prefix=str(prefix).strip().upper(),
        )
        logger.debug("Resolved workspace %s (dry_run=%s)", opts.root_dir, opts.dry_run)
        return opts

    @property
    def features_dir(self) -> Path:
        return self.root_dir / "features"

    @property
    def templates_dir(self) -> Path:
        return self.root_dir / "templates"

    @property
    def schemas_dir(self) -> Path:
        return self.root_dir / "schemas"

    @property
    def locks_dir(self) -> Path:
        return self.root_dir / "locks"
