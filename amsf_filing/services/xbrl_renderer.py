"""
XBRL Renderer.

Serializes a submission's merged answer set into a Strix XBRL instance.

Document layout:
    link:schemaRef      → manifest schema_ref
    ctx_entity          → RCI number, instant = Dec 31 of year
    ctx_country_<KEY>   → one per distinct dimension key, sorted
    unit_pure, unit_EUR
    strix:<code> facts  → manifest order; dimensional facts in key order

Malformed numeric values on integer / monetary / decimal elements:
    strict  → RenderDataError
    lenient → "0" / "0.00" and a warning

Dimension keys must match [A-Za-z][A-Za-z0-9_-]*:
    strict  → RenderDataError
    lenient → the member is dropped with a warning

Usage:
    from amsf_filing.services.xbrl_renderer import XbrlRenderer

    renderer = XbrlRenderer(submission, strict=True)
    xml = renderer.render()
    renderer.suggested_filename      # "amsf_2025_ABC123.xml"
"""

import logging
import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from xml.etree import ElementTree as ET

from flask import current_app

from amsf_filing.core.exceptions import RenderDataError, RenderError
from amsf_filing.core.values import Dimensional
from amsf_filing.services.value_merge import merged_answers
from amsf_filing.taxonomy.manifest import load_manifest

logger = logging.getLogger(__name__)

XBRLI_NS = "http://www.xbrl.org/2003/instance"
LINK_NS = "http://www.xbrl.org/2003/linkbase"
XLINK_NS = "http://www.w3.org/1999/xlink"
ISO4217_NS = "http://www.xbrl.org/2003/iso4217"
XBRLDI_NS = "http://xbrl.org/2006/xbrldi"
RCI_SCHEME = "http://amsf.mc/rci"

ENTITY_CONTEXT_ID = "ctx_entity"
EUR_UNIT_ID = "unit_EUR"
PURE_UNIT_ID = "unit_pure"

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

_TRUE_WORDS = {"oui", "true", "yes", "1"}
_FALSE_WORDS = {"non", "false", "no", "0"}
_DIMENSION_KEY = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")


def valid_dimension_key(key) -> bool:
    """True when ``key`` is usable as a context id suffix and a strix: QName local part."""
    return isinstance(key, str) and bool(_DIMENSION_KEY.match(key))


def dimension_context_id(key) -> str:
    if not valid_dimension_key(key):
        raise ValueError(f"Invalid dimension key {key!r}")
    return f"ctx_country_{key}"


def format_boolean(text):
    lowered = str(text).strip().lower()
    if lowered in _TRUE_WORDS:
        return "Oui"
    if lowered in _FALSE_WORDS:
        return "Non"
    return None


class XbrlRenderer:
    def __init__(self, submission, manifest=None, strict=None, values=None):
        self.submission = submission
        self.organization = submission.organization
        self.manifest = manifest or load_manifest(submission.taxonomy_version)
        if strict is None:
            strict = current_app.config.get("XBRL_STRICT_MODE", True)
        self.strict = bool(strict)
        self._values = values

    @property
    def suggested_filename(self):
        return f"amsf_{self.submission.year}_{self.organization.rci_number}.xml"

    @property
    def period_instant(self):
        return date(self.submission.year, 12, 31).isoformat()

    # ── Entry point ──────────────────────────────────────────────────────

    def render(self) -> str:
        """Return the XBRL instance as a UTF-8 XML string."""
        try:
            values = self._values if self._values is not None else merged_answers(
                self.submission, self.manifest,
            )
            root = self._build(values)
        except RenderError:
            raise
        except Exception as e:
            logger.exception("XBRL render failed for submission=%s", self.submission.id)
            raise RenderError(str(e), format="xbrl", submission_id=self.submission.id, cause=e) from e

        ET.indent(root, space="  ")
        return XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"

    # ── Document parts ───────────────────────────────────────────────────

    def _build(self, values):
        facts = []
        for item in values:
            element = self.manifest.element(item.code)
            if element is None:
                logger.warning("Skipping unknown element %s in submission=%s",
                               item.code, self.submission.id)
                continue
            if item.value.is_empty:
                continue
            facts.append((element, item.value))

        root = ET.Element("xbrli:xbrl", {
            "xmlns:xbrli": XBRLI_NS,
            "xmlns:link": LINK_NS,
            "xmlns:xlink": XLINK_NS,
            "xmlns:iso4217": ISO4217_NS,
            "xmlns:xbrldi": XBRLDI_NS,
            "xmlns:strix": self.manifest.namespace,
        })
        ET.SubElement(root, "link:schemaRef", {
            "xlink:type": "simple",
            "xlink:href": self.manifest.schema_ref,
        })

        entries = []
        dimension_keys = set()
        for element, value in facts:
            if not isinstance(value, Dimensional):
                entries.append((element, value.text, ENTITY_CONTEXT_ID))
                continue
            for key, text in value.sorted_items():
                if text is None or str(text).strip() == "" or not self._usable_key(element, key):
                    continue
                dimension_keys.add(key)
                entries.append((element, text, dimension_context_id(key)))

        self._add_context(root, ENTITY_CONTEXT_ID)
        for key in sorted(dimension_keys):
            self._add_context(root, dimension_context_id(key), dimension_key=key)
        self._add_units(root)

        for element, text, context_id in entries:
            self._add_fact(root, element, text, context_id)
        return root

    def _usable_key(self, element, key):
        if valid_dimension_key(key):
            return True
        if self.strict:
            raise RenderDataError(element.code, key, submission_id=self.submission.id,
                                  reason="invalid dimension key")
        logger.warning("Lenient render: %s dropped member with invalid key %r in submission=%s",
                       element.code, key, self.submission.id)
        return False

    def _add_context(self, root, context_id, dimension_key=None):
        context = ET.SubElement(root, "xbrli:context", {"id": context_id})
        entity = ET.SubElement(context, "xbrli:entity")
        identifier = ET.SubElement(entity, "xbrli:identifier", {"scheme": RCI_SCHEME})
        identifier.text = self.organization.rci_number
        if dimension_key is not None:
            segment = ET.SubElement(entity, "xbrli:segment")
            member = ET.SubElement(
                segment, "xbrldi:explicitMember", {"dimension": "strix:CountryDimension"},
            )
            member.text = f"strix:{dimension_key}"
        period = ET.SubElement(context, "xbrli:period")
        instant = ET.SubElement(period, "xbrli:instant")
        instant.text = self.period_instant

    @staticmethod
    def _add_units(root):
        pure = ET.SubElement(root, "xbrli:unit", {"id": PURE_UNIT_ID})
        ET.SubElement(pure, "xbrli:measure").text = "xbrli:pure"
        eur = ET.SubElement(root, "xbrli:unit", {"id": EUR_UNIT_ID})
        ET.SubElement(eur, "xbrli:measure").text = "iso4217:EUR"

    def _add_fact(self, root, element, text, context_id):
        attrs = {"contextRef": context_id}
        if element.monetary:
            attrs["unitRef"] = EUR_UNIT_ID
            attrs["decimals"] = "2"
        elif element.value_type == "decimal":
            attrs["unitRef"] = PURE_UNIT_ID
            attrs["decimals"] = "2"
        elif element.value_type == "integer":
            attrs["unitRef"] = PURE_UNIT_ID
            attrs["decimals"] = "0"

        fact = ET.SubElement(root, f"strix:{element.code}", attrs)
        fact.text = self._format(element, text)

    # ── Coercion ─────────────────────────────────────────────────────────

    def _format(self, element, text):
        if element.boolean:
            formatted = format_boolean(text)
            return formatted if formatted is not None else str(text)
        if not element.numeric:
            return str(text)

        number = self._parse_number(element, text)
        if element.value_type == "integer":
            return str(int(number))
        return str(number.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))

    def _parse_number(self, element, text):
        try:
            number = Decimal(str(text).strip())
            if not number.is_finite():
                raise InvalidOperation
            if element.value_type == "integer" and number != number.to_integral_value():
                raise InvalidOperation
            return number
        except InvalidOperation:
            if self.strict:
                raise RenderDataError(element.code, text, submission_id=self.submission.id)
            logger.warning(
                "Lenient render: %s=%r replaced with zero in submission=%s",
                element.code, text, self.submission.id,
            )
            return Decimal("0")


def render_xbrl(submission, strict=None) -> str:
    return XbrlRenderer(submission, strict=strict).render()
