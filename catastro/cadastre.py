"""
Catastro – coordinate → cadastral reference

Wraps OVCCoordenadas Consulta_RCCOOR:
https://ovc.catastro.meh.es/ovcservweb/OVCSWLocalizacionRC/OVCCoordenadas.asmx

Notes / limitations (practical):
- Inputs are lat/lng (EPSG:4326); the service wants X=lng, Y=lat.
- The service index is tile based. A point sitting exactly on a tile or
  parcel boundary often comes back empty even though a parcel is there; a
  ~25 m nudge usually recovers it (see jitter_points()).
- A "no match" is a 200 with an <lerr> block, not an HTTP error.
"""

from __future__ import annotations

import logging
import re
from typing import Iterator

from catastro import config
from catastro.document import find_first, parse
from catastro.errors import UpstreamBadResponse
from catastro.models import PARCEL_LEN, UNIT_LEN, CoordinateHit, GeoPoint, ResolutionAttempt
from catastro.names import parse_locator

logger = logging.getLogger(__name__)

_REF_RE = re.compile(r"^[0-9A-Z]+$")


def clean_reference(value: str | None) -> str | None:
    """Uppercase, drop blanks; None unless it is a 14- or 20-char code."""
    if not value:
        return None
    s = "".join(str(value).split()).upper()
    if len(s) not in (PARCEL_LEN, UNIT_LEN) or not _REF_RE.match(s):
        return None
    return s


def extract_reference(tree) -> str | None:
    """
    Reference code from any OVC response shape: either split into
    pc1/pc2 (+ car/cc1/cc2 for a unit) or as a single leaf.
    """
    pc1 = find_first(tree, "pc1")
    pc2 = find_first(tree, "pc2")
    if pc1 and pc2:
        parts = [pc1, pc2] + [find_first(tree, k) or "" for k in ("car", "cc1", "cc2")]
        return clean_reference("".join(parts)) or clean_reference(pc1 + pc2)

    for key in ("refcat", "rc", "idbi"):
        ref = clean_reference(find_first(tree, key))
        if ref:
            return ref
    return None


def to_parcel(ref: str) -> str:
    return ref[:PARCEL_LEN]


def jitter_points(origin: GeoPoint, step: float = config.JITTER_DEG) -> Iterator[GeoPoint]:
    """origin, +lat, -lat, +lng, -lng (fixed order)."""
    yield origin
    yield origin.offset(dlat=step)
    yield origin.offset(dlat=-step)
    yield origin.offset(dlng=step)
    yield origin.offset(dlng=-step)


async def query_point(client, point: GeoPoint) -> CoordinateHit | None:
    params = {
        "SRS": config.SRS,
        "Coordenada_X": point.lng,
        "Coordenada_Y": point.lat,
    }
    resp = await client.fetch(config.COORDS_URL, params=params, timeout=config.COORDS_TIMEOUT)
    if not resp.ok:
        raise UpstreamBadResponse(f"Consulta_RCCOOR returned HTTP {resp.status}", resp.status)

    tree = parse(resp.body)
    ref = extract_reference(tree)
    if not ref:
        return None

    locator = find_first(tree, "ldt")
    loc = parse_locator(locator)
    return CoordinateHit(
        parcel_ref=to_parcel(ref),
        point=point,
        tree=tree,
        raw=resp.body,
        provincia=find_first(tree, "np") or loc.provincia,
        municipio=find_first(tree, "nm") or loc.municipio,
        locator=locator,
    )


async def resolve_from_coordinates(
    client,
    lat: float,
    lng: float,
    jitter: bool = False,
    attempts: list[ResolutionAttempt] | None = None,
) -> CoordinateHit | None:
    """
    Parcel (14-char) reference at a point, or None.

    With jitter=True the query is repeated at four nudged points, stopping at
    the first hit. Transport failures (UpstreamUnreachable) propagate.
    """
    origin = GeoPoint(float(lat), float(lng))
    points = jitter_points(origin) if jitter else iter([origin])
    log = attempts if attempts is not None else []

    for point in points:
        variant = f"{point.lat},{point.lng}"
        try:
            hit = await query_point(client, point)
        except UpstreamBadResponse as ex:
            logger.warning("coordinate lookup at %s failed: %s", variant, ex)
            log.append(ResolutionAttempt("coordinates", variant, "bad_response", {"status": ex.status}))
            continue

        if hit is None:
            logger.debug("no parcel at %s", variant)
            log.append(ResolutionAttempt("coordinates", variant, "miss"))
            continue

        log.append(ResolutionAttempt("coordinates", variant, "ok", {"refcat": hit.parcel_ref}))
        return hit

    return None
