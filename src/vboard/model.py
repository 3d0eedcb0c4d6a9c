"""
Feature Model

A feature lives in one Markdown file: a YAML front matter block followed by
a body of ``## `` sections.

File Structure:
    ---
    id: FTR-0001
    title: Alpha
    status: backlog
    owner: unassigned
    priority: medium
    complexity: M
    created: 2026-01-05
    updated: 2026-01-05
    labels:
      - api
    dependencies:
      - FTR-0000
    ---
    Optional intro text.

    ## Summary

    Provide a concise summary.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from vboard.exceptions import InvalidArgumentError, MalformedRecordError, NotFoundError
from vboard.status import directory_for_status

FRONTMATTER_PATTERN = re.compile(r"^---\n(.*?)\n---\n(.*)$", re.DOTALL)
SECTION_PREFIX = "## "
DATE_FORMAT = "%Y-%m-%d"

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


def _without_timestamps(resolvers: Dict[Any, list]) -> Dict[Any, list]:
    return {
        key: [(tag, regexp) for tag, regexp in entries if tag != _TIMESTAMP_TAG]
        for key, entries in resolvers.items()
    }


class _HeaderLoader(yaml.SafeLoader):
    """SafeLoader that keeps ISO dates as plain strings."""


class _HeaderDumper(yaml.SafeDumper):
    """SafeDumper that writes ISO date strings unquoted."""


_HeaderLoader.yaml_implicit_resolvers = _without_timestamps(yaml.SafeLoader.yaml_implicit_resolvers)
_HeaderDumper.yaml_implicit_resolvers = _without_timestamps(yaml.SafeDumper.yaml_implicit_resolvers)


def today() -> str:
    return date.today().strftime(DATE_FORMAT)


def split_list(value: str) -> List[str]:
    """Split a comma/newline separated string, dropping blanks."""
    return [part.strip() for part in re.split(r"[,\n]", value or "") if part.strip()]


def normalize_list(values: Optional[List[Any]]) -> List[str]:
    return [str(v).strip() for v in (values or []) if v is not None and str(v).strip()]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return split_list(value)
    if isinstance(value, (list, tuple, set)):
        return normalize_list(list(value))
    return [str(value)]


@dataclass
class FrontMatter:
    """Structured header of a feature file."""

    id: str = ""
    title: str = ""
    status: str = ""
    owner: str = ""
    priority: str = ""
    complexity: str = ""
    created: str = ""
    updated: str = ""
    labels: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    epic: str = ""
    risk_notes: str = ""
    # Keys we don't model are kept so a rewrite never drops them
    extra: Dict[str, Any] = field(default_factory=dict)

    REQUIRED = ("id", "title", "status", "created", "updated")
    OPTIONAL_TEXT = ("owner", "priority", "complexity")
    TRAILING_TEXT = ("epic", "risk_notes")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for YAML serialization.

        Empty optional attributes are omitted.
        """
        result: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "status": self.status,
        }
        for key in self.OPTIONAL_TEXT:
            value = getattr(self, key)
            if value:
                result[key] = value
        result["created"] = self.created
        result["updated"] = self.updated
        if self.labels:
            result["labels"] = list(self.labels)
        if self.dependencies:
            result["dependencies"] = list(self.dependencies)
        for key in self.TRAILING_TEXT:
            value = getattr(self, key)
            if value:
                result[key] = value
        for key, value in self.extra.items():
            result.setdefault(key, value)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FrontMatter":
        """Create from dictionary."""
        known = {
            "id", "title", "status", "owner", "priority", "complexity",
            "created", "updated", "labels", "dependencies", "epic", "risk_notes",
        }
        return cls(
            id=_as_text(data.get("id")).strip(),
            title=_as_text(data.get("title")),
            status=_as_text(data.get("status")).strip().lower(),
            owner=_as_text(data.get("owner")),
            priority=_as_text(data.get("priority")),
            complexity=_as_text(data.get("complexity")),
            created=_as_text(data.get("created")).strip(),
            updated=_as_text(data.get("updated")).strip(),
            labels=_as_list(data.get("labels")),
            dependencies=_as_list(data.get("dependencies")),
            epic=_as_text(data.get("epic")),
            risk_notes=_as_text(data.get("risk_notes")),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class DocumentSections:
    """Body split into an intro blob and ordered ``## `` sections."""

    intro: str = ""
    order: List[str] = field(default_factory=list)
    data: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, body: str) -> "DocumentSections":
        """Scan top-level ``## `` headings.

        A repeated heading keeps its first position and its last content.
        """
        sections = cls()
        current: Optional[str] = None
        buffer: List[str] = []

        def flush() -> None:
            chunk = "\n".join(buffer)
            if current is None:
                sections.intro = chunk.rstrip("\n")
            else:
                sections.data[current] = chunk.strip()
            buffer.clear()

        for line in body.split("\n"):
            if line.startswith(SECTION_PREFIX):
                flush()
                current = line[len(SECTION_PREFIX):].strip()
                if current not in sections.order:
                    sections.order.append(current)
                continue
            buffer.append(line)
        flush()

        return sections

    def render(self) -> str:
        parts: List[str] = []
        intro = self.intro.rstrip("\n")
        if intro:
            parts.append(intro + "\n\n")
        for name in self.order:
            parts.append(f"{SECTION_PREFIX}{name}\n")
            content = self.data.get(name, "").strip()
            if content:
                parts.append(content + "\n")
            parts.append("\n")
        return "".join(parts).rstrip("\n") + "\n"


def extract_sections(body: str) -> Tuple[List[str], Dict[str, str]]:
    """Section order and contents of a body, for template processing."""
    parsed = DocumentSections.parse(body)
    return list(parsed.order), dict(parsed.data)


@dataclass
class Feature:
    """A feature file: its location, header and body."""

    path: Path
    front_matter: FrontMatter
    body: str = ""
    # Header mapping exactly as decoded from disk; None for records built in memory
    raw_header: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)

    @property
    def id(self) -> str:
        return self.front_matter.id

    @property
    def status(self) -> str:
        return self.front_matter.status

    def encode(self) -> bytes:
        """Serialize back into front matter + Markdown."""
        header = yaml.dump(
            self.front_matter.to_dict(),
            Dumper=_HeaderDumper,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        if not header.endswith("\n"):
            header += "\n"
        body = self.body.lstrip("\n")
        if not body.endswith("\n"):
            body += "\n"
        return f"---\n{header}---\n{body}".encode("utf-8")

    def touch(self) -> None:
        """Stamp the updated date with today."""
        self.front_matter.updated = today()

    def status_directory(self, root: Path) -> Optional[Path]:
        rel = directory_for_status(self.front_matter.status)
        if not rel:
            return None
        return root / rel

    def sections(self) -> DocumentSections:
        return DocumentSections.parse(self.body)

    def section(self, name: str) -> Optional[str]:
        return self.sections().data.get(name.strip())

    def set_section(self, name: str, content: str) -> None:
        """Replace the content of an existing section."""
        sections = self.sections()
        normalized = name.strip()
        if normalized not in sections.data:
            raise NotFoundError(self.id, f"section {normalized!r} not found in {self.id}")
        sections.data[normalized] = content.strip()
        self.body = sections.render()

    def add_missing_sections(
        self, order: List[str], defaults: Optional[Dict[str, str]] = None
    ) -> bool:
        """Append any of ``order`` not present in the body.

        Returns:
            True if the body changed
        """
        sections = self.sections()
        changed = False
        for name in order:
            if name not in sections.data:
                sections.order.append(name)
                sections.data[name] = (defaults or {}).get(name, "")
                changed = True
        if changed:
            self.body = sections.render()
        return changed

    def set_field(self, key: str, value: str) -> None:
        """Update a front matter field by name."""
        fm = self.front_matter
        key = key.strip().lower()
        if key in ("id", "created", "updated"):
            setattr(fm, key, value.strip())
        elif key == "status":
            fm.status = value.strip().lower()
        elif key in ("title", "owner", "priority", "complexity", "epic", "risk_notes"):
            setattr(fm, key, value)
        elif key in ("labels", "dependencies"):
            setattr(fm, key, split_list(value))
        else:
            raise InvalidArgumentError(f"unknown field {key}", argument="field")

    def labels_as_yaml(self) -> str:
        """Labels in YAML flow notation, for log lines."""
        if not self.front_matter.labels:
            return "[]"
        return "[" + ", ".join(f'"{label}"' for label in self.front_matter.labels) + "]"


def parse(path: Union[str, Path], data: Union[str, bytes]) -> Feature:
    """
    Parse raw file content into a Feature.

    Args:
        path: Where the content was read from
        data: Raw file bytes or text

    Returns:
        Parsed Feature

    Raises:
        MalformedRecordError: If the front matter is missing or undecodable
    """
    path = Path(path)
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedRecordError(path, f"not valid UTF-8: {e}") from e
    else:
        text = data
    text = text.replace("\r\n", "\n")

    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        raise MalformedRecordError(path, "missing frontmatter")

    try:
        header = yaml.load(match.group(1), Loader=_HeaderLoader)
    except yaml.YAMLError as e:
        raise MalformedRecordError(path, f"failed to parse frontmatter: {e}") from e

    if header is None:
        header = {}
    if not isinstance(header, dict):
        raise MalformedRecordError(path, "frontmatter must be a mapping")

    body = match.group(2)
    if body.startswith("\n"):
        body = body[1:]

    return Feature(
        path=path,
        front_matter=FrontMatter.from_dict(header),
        body=body,
        raw_header=header,
    )
