"""Static mapping from detail-page labels to listing fields."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from carlisting.scraper.models import FieldKind, FieldSpec, TargetField

FieldMap = Mapping[str, FieldSpec]

FIELD_MAP: FieldMap = MappingProxyType(
    {
        "Märke": FieldSpec(TargetField.MAKE, FieldKind.TAXONOMY),
        "Modell": FieldSpec(TargetField.MODEL, FieldKind.TAXONOMY),
        "Årsmodell": FieldSpec(TargetField.MODEL_YEAR, FieldKind.NUMBER),
        "Miltal": FieldSpec(TargetField.MILEAGE, FieldKind.NUMBER),
        "Drivmedel": FieldSpec(TargetField.FUEL, FieldKind.TAXONOMY),
        "Växellåda": FieldSpec(TargetField.GEARBOX, FieldKind.TAXONOMY),
        "Drivhjul": FieldSpec(TargetField.DRIVE_WHEELS, FieldKind.TAXONOMY),
        "Regnr": FieldSpec(TargetField.REGISTRATION, FieldKind.TEXT),
    }
)
