"""
AMSF Survey Filer
Taxonomy manifest: the versioned list of Strix elements and questionnaire sections.

The manifest is read-only configuration shipped as ``data/strix_<version>.json``.
Nothing in the application may emit an element code the manifest does not define.

Usage:
    from amsf_filing.taxonomy.manifest import load_manifest

    manifest = load_manifest("2025")
    manifest.element("a1101").value_type   # "integer"
    manifest.required_codes()              # ["aACTIVE", ...]
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from functools import lru_cache

from amsf_filing.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")

DEFAULT_VERSION = "2025"

VALUE_TYPES = {"integer", "monetary", "boolean", "string", "decimal"}

NUMERIC_TYPES = {"integer", "monetary", "decimal"}

_NUMERIC_SECTION = re.compile(r"^(\d+)\.(\d+)$")
_CONTROLS_SECTION = re.compile(r"^C(\d+)\.(\d+)$")
_SIGNATORY_SECTION = re.compile(r"^S(\d+)$")


def section_sort_key(section_id: str) -> tuple:
    """Order sections 1.x < 2.x < 3.x < C1.x < S1."""
    m = _NUMERIC_SECTION.match(section_id)
    if m:
        return (0, int(m.group(1)), int(m.group(2)))
    m = _CONTROLS_SECTION.match(section_id)
    if m:
        return (1, int(m.group(1)), int(m.group(2)))
    m = _SIGNATORY_SECTION.match(section_id)
    if m:
        return (2, int(m.group(1)), 0)
    return (99, 0, 0)


@dataclass(frozen=True)
class ManifestElement:
    code: str
    label: str
    value_type: str
    required: bool
    dimensional: bool
    order: int
    section: str

    @property
    def numeric(self) -> bool:
        return self.value_type in NUMERIC_TYPES

    @property
    def monetary(self) -> bool:
        return self.value_type == "monetary"

    @property
    def boolean(self) -> bool:
        return self.value_type == "boolean"


@dataclass(frozen=True)
class ManifestSection:
    id: str
    title: str
    codes: tuple


class TaxonomyManifest:
    """In-memory view over one manifest version."""

    def __init__(self, version, namespace, schema_ref, sections, elements):
        self.version = version
        self.namespace = namespace
        self.schema_ref = schema_ref
        self._sections = list(sections)
        self._elements = {e.code: e for e in elements}

    @classmethod
    def from_dict(cls, data: dict) -> "TaxonomyManifest":
        sections = []
        elements = []
        seen = set()
        for raw_section in sorted(data.get("sections", []), key=lambda s: section_sort_key(s["id"])):
            codes = []
            for raw in raw_section.get("elements", []):
                code = raw["code"]
                if raw["value_type"] not in VALUE_TYPES:
                    raise ValueError(f"Unknown value_type '{raw['value_type']}' for element {code}")
                if code in seen:
                    raise ValueError(f"Duplicate element code in manifest: {code}")
                seen.add(code)
                codes.append(code)
                elements.append(ManifestElement(
                    code=code,
                    label=raw.get("label", code),
                    value_type=raw["value_type"],
                    required=bool(raw.get("required", False)),
                    dimensional=bool(raw.get("dimensional", False)),
                    order=len(elements) + 1,
                    section=raw_section["id"],
                ))
            sections.append(ManifestSection(raw_section["id"], raw_section["title"], tuple(codes)))
        return cls(data["version"], data["namespace"], data["schema_ref"], sections, elements)

    # ── Lookups ──────────────────────────────────────────────────────────

    def __contains__(self, code) -> bool:
        return code in self._elements

    def __len__(self) -> int:
        return len(self._elements)

    @property
    def codes(self) -> list[str]:
        return list(self._elements)

    @property
    def elements(self) -> list[ManifestElement]:
        return list(self._elements.values())

    @property
    def sections(self) -> list[ManifestSection]:
        return list(self._sections)

    def element(self, code: str) -> ManifestElement | None:
        return self._elements.get(code)

    def section(self, section_id: str) -> ManifestSection | None:
        for s in self._sections:
            if s.id == section_id:
                return s
        return None

    def elements_for(self, section_id: str) -> list[ManifestElement]:
        section = self.section(section_id)
        if not section:
            return []
        return [self._elements[c] for c in section.codes]

    def required_codes(self) -> list[str]:
        return [e.code for e in self.elements if e.required]

    def dimensional_codes(self) -> list[str]:
        return [e.code for e in self.elements if e.dimensional]

    def unknown_codes(self, codes) -> list[str]:
        """Codes from ``codes`` the manifest does not define, in input order."""
        return [c for c in codes if c not in self._elements]

    def __repr__(self):
        return f"<TaxonomyManifest {self.version}: {len(self)} elements>"


def available_versions() -> list[str]:
    versions = []
    for name in os.listdir(DATA_DIR):
        m = re.match(r"^strix_(.+)\.json$", name)
        if m:
            versions.append(m.group(1))
    return sorted(versions)


def load_manifest(version: str | None = None) -> TaxonomyManifest:
    """Return the cached manifest for ``version`` (default: DEFAULT_VERSION)."""
    return _load_manifest(str(version or DEFAULT_VERSION))


@lru_cache(maxsize=8)
def _load_manifest(version: str) -> TaxonomyManifest:
    path = os.path.join(DATA_DIR, f"strix_{version}.json")
    if not os.path.exists(path):
        raise NotFoundError(resource="TaxonomyManifest", resource_id=version)
    with open(path, encoding="utf-8") as fh:
        manifest = TaxonomyManifest.from_dict(json.load(fh))
    logger.debug("Loaded taxonomy manifest %s (%d elements)", version, len(manifest))
    return manifest
