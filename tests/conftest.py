"""Shared fixtures: a temporary .virtualboard workspace with template and schema."""

import json
from pathlib import Path

import pytest

from vboard.config import Options
from vboard.manager import FeatureManager

TEMPLATE = """---
id: TEMPLATE
title: Template Feature
status: backlog
owner: template
priority: medium
complexity: M
created: 2023-01-01
updated: 2023-01-01
labels:
  - template
dependencies: []
---

# <Feature Title>

## Summary

Provide a concise summary.

## Details

Additional details.
"""

SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["id", "title", "status", "created", "updated"],
    "properties": {
        "id": {"type": "string"},
        "title": {"type": "string"},
        "status": {"type": "string"},
        "owner": {"type": "string"},
        "priority": {"type": "string"},
        "complexity": {"type": "string", "enum": ["XS", "S", "M", "L", "XL"]},
        "created": {"type": "string"},
        "updated": {"type": "string"},
        "labels": {"type": "array", "items": {"type": "string"}},
        "dependencies": {"type": "array", "items": {"type": "string"}},
        "epic": {"type": "string"},
        "risk_notes": {"type": "string"},
    },
    "additionalProperties": True,
}

STATUS_DIRS = ["backlog", "in-progress", "blocked", "review", "done"]


def feature_text(
    feature_id: str,
    title: str,
    status: str = "backlog",
    dependencies=None,
    created: str = "2024-01-01",
    updated: str = "2024-01-02",
    extra: str = "",
) -> str:
    """Build the raw text of a feature file."""
    lines = [
        "---",
        f"id: {feature_id}",
        f"title: {title}",
        f"status: {status}",
        "owner: sam",
        "priority: high",
        "complexity: S",
        f"created: {created}",
        f"updated: {updated}",
    ]
    if dependencies:
        lines.append("dependencies:")
        lines.extend(f"  - {dep}" for dep in dependencies)
    if extra:
        lines.append(extra)
    lines.append("---")
    lines.append("")
    lines.append("## Summary")
    lines.append("")
    lines.append(f"{title} summary.")
    return "\n".join(lines) + "\n"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep host VB_* settings and .env files out of the tests."""
    for key in ("VB_ROOT", "VB_DRY_RUN", "VB_ID_PREFIX", "VB_DEBUG"):
        monkeypatch.delenv(key, raising=False)
    cwd = tmp_path / "cwd"
    cwd.mkdir()
    monkeypatch.chdir(cwd)


@pytest.fixture
def root(tmp_path) -> Path:
    """Project root containing a populated .virtualboard workspace."""
    project = tmp_path / "project"
    workspace = project / ".virtualboard"
    for status in STATUS_DIRS:
        (workspace / "features" / status).mkdir(parents=True)
    for name in ("templates", "schemas", "locks"):
        (workspace / name).mkdir(parents=True)
    (workspace / "templates" / "spec.md").write_text(TEMPLATE)
    (workspace / "schemas" / "frontmatter.schema.json").write_text(json.dumps(SCHEMA, indent=2))
    return project.resolve()


@pytest.fixture
def workspace(root) -> Path:
    return root / ".virtualboard"


@pytest.fixture
def options(root) -> Options:
    return Options.init(root=root)


@pytest.fixture
def dry_options(root) -> Options:
    return Options.init(root=root, dry_run=True)


@pytest.fixture
def manager(options) -> FeatureManager:
    return FeatureManager(options)


@pytest.fixture
def write_feature(workspace):
    """Write a raw feature file into a status directory."""

    def _write(feature_id, title, status="backlog", directory=None, filename=None, **kwargs):
        directory = directory or status
        slug = title.lower().replace(" ", "-")
        path = workspace / "features" / directory / (filename or f"{feature_id}-{slug}.md")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(feature_text(feature_id, title, status=status, **kwargs))
        return path

    return _write
