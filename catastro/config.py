"""
Catastro – endpoints and tunables

Upstream services (Spanish Dirección General del Catastro):
https://ovc.catastro.meh.es/ovcservweb/OVCSWLocalizacionRC/
https://www1.sedecatastro.gob.es/CYCBienInmueble/

Everything here can be overridden from the environment so the engine can be
pointed at a mirror or a test double without code changes.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

OVC_BASE = os.environ.get(
    "CATASTRO_OVC_BASE", "https://ovc.catastro.meh.es/ovcservweb/OVCSWLocalizacionRC"
)
SEDE_BASE = os.environ.get(
    "CATASTRO_SEDE_BASE", "https://www1.sedecatastro.gob.es/CYCBienInmueble"
)

COORDS_URL = f"{OVC_BASE}/OVCCoordenadas.asmx/Consulta_RCCOOR"
MUNICIPALITY_URL = f"{OVC_BASE}/OVCCallejero.asmx/ConsultaMunicipio"
ADDRESS_URL = f"{OVC_BASE}/OVCCallejero.asmx/Consulta_DNPLOC"
ENRICH_URL = f"{OVC_BASE}/OVCCallejero.asmx/Consulta_DNPRC"
UNIT_LIST_URL = f"{SEDE_BASE}/OVCListaBienes.aspx"

SRS = "EPSG:4326"

# Per-call timeouts (seconds). Not composed into a request-wide deadline.
COORDS_TIMEOUT = 8
MUNICIPALITY_TIMEOUT = 8
ADDRESS_TIMEOUT = 12
ENRICH_TIMEOUT = 15
UNIT_LIST_TIMEOUT = 45

# ~25 m nudge used when a point lands on a tile/parcel boundary.
JITTER_DEG = 0.00025

UNIT_WORKERS = 5

DEFAULT_USER_AGENT = os.environ.get(
    "CATASTRO_USER_AGENT",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/125.0 Safari/537.36",
)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class FetcherConfig:
    """Immutable connection settings handed to a Fetcher at construction."""

    user_agent: str = DEFAULT_USER_AGENT
    headers: tuple[tuple[str, str], ...] = (
        ("Accept", "text/xml,application/xml,text/html;q=0.9,*/*;q=0.8"),
        ("Accept-Language", "es-ES,es;q=0.9"),
    )
    pool_size: int = field(default_factory=lambda: _env_int("CATASTRO_POOL_SIZE", 20))
    max_attempts: int = field(default_factory=lambda: max(1, _env_int("CATASTRO_MAX_ATTEMPTS", 3)))
    backoff_base: float = 0.5

    def header_dict(self) -> dict[str, str]:
        out = {"User-Agent": self.user_agent}
        out.update(dict(self.headers))
        return out
