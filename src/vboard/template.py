"""Applies the canonical feature template to existing features."""

from typing import Dict, List

from vboard.exceptions import StorageError
from vboard.manager import FeatureManager
from vboard.model import Feature, extract_sections, parse


class TemplateProcessor:
    """Fills missing body sections and header defaults from ``templates/spec.md``."""

    def __init__(self, manager: FeatureManager):
        path = manager.template_path
        try:
            data = path.read_bytes()
        except OSError as e:
            raise StorageError("failed to read template", path=path, details=str(e)) from e
        self.template: Feature = parse(path, data)
        order, defaults = extract_sections(self.template.body)
        self.section_order: List[str] = order
        self.section_defaults: Dict[str, str] = defaults

    def apply(self, target: Feature) -> Feature:
        """Add missing sections and fill empty priority/complexity/status/owner."""
        target.add_missing_sections(self.section_order, self.section_defaults)

        fm = target.front_matter
        defaults = self.template.front_matter
        for key in ("priority", "complexity", "status", "owner"):
            if not getattr(fm, key):
                setattr(fm, key, getattr(defaults, key))
        return target
