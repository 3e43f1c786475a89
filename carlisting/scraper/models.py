"""Data models for the scraper pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

from bs4 import BeautifulSoup

# A fetched, parsed page.  Selectors run against it via ``select``/``select_one``.
Document = BeautifulSoup


@dataclass
class RawPage:
    """The raw HTTP response for a single URL fetch."""

    url: str
    html: str
    status_code: int
    content: bytes = b""


class FieldKind(str, Enum):
    """How a detail value is cleaned and where the repository stores it."""

    NUMBER = "number"
    TEXT = "text"
    TAXONOMY = "taxonomy"


class TargetField(str, Enum):
    """Closed set of listing fields that detail labels can be mapped onto.

    The values are the field identifiers used by the listing store.
    """

    MAKE = "vehica_6659"
    MODEL = "vehica_6660"
    MODEL_YEAR = "vehica_14696"
    MILEAGE = "vehica_6664"
    FUEL = "vehica_6663"
    GEARBOX = "vehica_6662"
    DRIVE_WHEELS = "vehica_6661"
    REGISTRATION = "vehica_6671"


@dataclass(frozen=True)
class FieldSpec:
    target: TargetField
    kind: FieldKind


@dataclass(frozen=True)
class DetailValue:
    kind: FieldKind
    value: str


@dataclass
class Record:
    """A parsed detail page, ready to be upserted by the repository."""

    identifier: str
    title: str = ""
    price: str = ""
    detail_fields: Dict[TargetField, DetailValue] = field(default_factory=dict)
    external_reference_url: str = ""
    additional_attributes: Dict[str, str] = field(default_factory=dict)
    images: List[str] = field(default_factory=list)
    features: List[str] = field(default_factory=list)
