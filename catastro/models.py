"""Request-scoped records passed between the resolution steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

PARCEL_LEN = 14
UNIT_LEN = 20


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float

    def offset(self, dlat: float = 0.0, dlng: float = 0.0) -> "GeoPoint":
        return GeoPoint(round(self.lat + dlat, 7), round(self.lng + dlng, 7))


@dataclass
class ResolutionAttempt:
    """One cascade step: what was tried, how it went, what it yielded."""

    step: str
    variant: str
    outcome: str  # "ok" | "miss" | "bad_response" | "unreachable"
    fields: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {"step": self.step, "variant": self.variant, "outcome": self.outcome, **self.fields}


@dataclass
class CoordinateHit:
    parcel_ref: str
    point: GeoPoint
    tree: Any
    raw: str
    provincia: str | None = None
    municipio: str | None = None
    locator: str | None = None


@dataclass
class AddressHit:
    parcel_ref: str
    tree: Any
    raw: str
    unit_ref: str | None = None
    provincia: str | None = None
    municipio: str | None = None
    provincia_ine: str | None = None
    municipio_ine: str | None = None
    locator: str | None = None


@dataclass
class EnrichmentRecord:
    tipo_via: str | None = None
    nombre_via: str | None = None
    numero: str | None = None
    codigo_postal: str | None = None
    uso: str | None = None
    superficie_m2: float | None = None
    anio_construccion: int | None = None
    provincia: str | None = None
    municipio: str | None = None
    provincia_ine: str | None = None
    municipio_ine: str | None = None
    locator: str | None = None
    source: str | None = None
    raw: str = ""
