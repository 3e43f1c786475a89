"""Detail-page extraction: turns a parsed page into a :class:`Record`.

Everything here is a pure function of the document; a missing node yields an
empty value, never an exception.
"""

from __future__ import annotations

from typing import Dict, List

from bs4 import Tag

from carlisting.scraper.cleaning import clean_number, clean_text
from carlisting.scraper.field_map import FIELD_MAP, FieldMap
from carlisting.scraper.models import (
    DetailValue,
    Document,
    FieldKind,
    Record,
    TargetField,
)

TITLE_SELECTOR = ".vehicle-detail-title"
PRICE_SELECTOR = "#vehicle-details .vehicle-detail-price .car-price-details"
CARFAX_SELECTOR = "#extended-carfax-details .extended-carfax-details-headline a"
DETAILS_SELECTOR = "div.vehicle-detail-headline .object-info-box dl"
ADDITIONAL_SELECTOR = (
    ".vehicle-detail-additional-detail > .additional-vehicle-data > ul > li > div"
)
IMAGES_SELECTOR = "div.main-slideshow-container > ul.uk-slideshow > li"
FEATURES_SELECTOR = "div.vehicle-detail-equipment-detail .equipment-box ul li"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _text_of(document: Document, selector: str) -> str:
    """Return the raw text of the first match for *selector*, or ``""``."""
    node = document.select_one(selector)
    return node.get_text() if node is not None else ""


def _extract_details(document: Document, field_map: FieldMap) -> Dict[TargetField, DetailValue]:
    """Pair the nth ``dt`` with the nth ``dd`` of the first details list.

    Only labels present in *field_map* are kept.  Values are cleaned as
    numbers for ``number`` fields and as text otherwise.
    """
    details: Dict[TargetField, DetailValue] = {}
    block = document.select_one(DETAILS_SELECTOR)
    if block is None:
        return details

    labels = block.find_all("dt")
    values = block.find_all("dd")
    for label_node, value_node in zip(labels, values):
        spec = field_map.get(clean_text(label_node.get_text()))
        if spec is None:
            continue
        raw = value_node.get_text()
        value = clean_number(raw) if spec.kind is FieldKind.NUMBER else clean_text(raw)
        details[spec.target] = DetailValue(kind=spec.kind, value=value)
    return details


def _extract_additional(document: Document) -> Dict[str, str]:
    """Build ``{key: value}`` from alternating key/value siblings.

    A trailing key without a value is dropped.
    """
    nodes = [clean_text(n.get_text()) for n in document.select(ADDITIONAL_SELECTOR)]
    additional: Dict[str, str] = {}
    for key, value in zip(nodes[0::2], nodes[1::2]):
        additional[key] = value
    return additional


def _extract_images(document: Document) -> List[str]:
    """Return slide ``data-src`` values in order, skipping empties and repeats."""
    images: List[str] = []
    for slide in document.select(IMAGES_SELECTOR):
        src = slide.get("data-src")
        if isinstance(src, list):
            src = " ".join(src)
        src = (src or "").strip()
        if src and src not in images:
            images.append(src)
    return images


def _extract_features(document: Document) -> List[str]:
    return [clean_text(item.get_text()) for item in document.select(FEATURES_SELECTOR)]


def _extract_carfax(document: Document) -> str:
    node = document.select_one(CARFAX_SELECTOR)
    if not isinstance(node, Tag):
        return ""
    href = node.get("href") or ""
    return href.strip() if isinstance(href, str) else ""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_detail_page(
    document: Document,
    identifier: str,
    field_map: FieldMap = FIELD_MAP,
) -> Record:
    """Extract a :class:`Record` from a car detail page.

    Args:
        document: The parsed detail page.
        identifier: Relative URL path the page was fetched from; becomes the
            record's natural key unchanged.
        field_map: Label → (target field, kind) table for the details block.

    Returns:
        A fully populated :class:`Record`.  Fields whose nodes are absent are
        left empty.
    """
    return Record(
        identifier=identifier,
        title=clean_text(_text_of(document, TITLE_SELECTOR)),
        price=clean_number(_text_of(document, PRICE_SELECTOR)),
        detail_fields=_extract_details(document, field_map),
        external_reference_url=_extract_carfax(document),
        additional_attributes=_extract_additional(document),
        images=_extract_images(document),
        features=_extract_features(document),
    )
