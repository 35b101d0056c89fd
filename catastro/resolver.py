"""
Catastro – resolution orchestrator

One call per incoming request:

    INIT -> LOCATING -> UNIT_DISAMBIGUATION -> ENRICHING -> DONE
                 `-> NOT_FOUND

Only LOCATING can end in NOT_FOUND. Unit disambiguation and enrichment are
best effort: when they fail the payload says so and still comes back ok.

Failures that escape resolve():
- InputError           bad/missing coordinates or reference (no network used)
- UpstreamUnreachable  transport failed on every retry while locating, and no
                       other location branch produced a reference
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any

from catastro.address import resolve_from_address
from catastro.cadastre import clean_reference, resolve_from_coordinates, to_parcel
from catastro.enrich import enrich, enrich_many, merge_address
from catastro.errors import EnrichmentFailed, InputError, UpstreamBadResponse, UpstreamUnreachable
from catastro.models import (
    PARCEL_LEN,
    UNIT_LEN,
    EnrichmentRecord,
    GeoPoint,
    ResolutionAttempt,
)
from catastro.names import (
    clean_municipality_name,
    clean_province_name,
    normalize_number,
    normalize_province_code,
)
from catastro.units import list_units, pick_unit

logger = logging.getLogger(__name__)

STRATEGY_COORDS = "coords"

DEGRADED_NOTE = (
    "Catastro no devolvió datos descriptivos para la referencia; "
    "la dirección se ha construido a partir del texto localizador y los datos aportados."
)

DEBUG_SAMPLE_CHARS = 1500


class State(enum.Enum):
    INIT = "init"
    LOCATING = "locating"
    UNIT_DISAMBIGUATION = "unit_disambiguation"
    ENRICHING = "enriching"
    DONE = "done"
    NOT_FOUND = "not_found"


@dataclass
class ResolveRequest:
    lat: Any
    lng: Any
    provincia: str | None = None
    municipio: str | None = None
    calle: str | None = None
    numero: str | None = None
    unidad: str | None = None
    refcat: str | None = None
    strategy: str | None = None
    debug: bool = False


@dataclass
class _Context:
    request: ResolveRequest
    point: GeoPoint | None = None
    provincia: str = ""
    municipio: str = ""
    refcat: str | None = None
    located_by: str | None = None
    located_point: GeoPoint | None = None
    located_names: tuple[str | None, str | None] = (None, None)
    located_codes: tuple[str | None, str | None] = (None, None)
    locator: str | None = None
    located_raw: str = ""
    record: EnrichmentRecord | None = None
    degraded: bool = False
    attempts: list[ResolutionAttempt] = field(default_factory=list)


def _coerce_coordinate(value, name: str, limit: float) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InputError(f"{name} is required")
    try:
        out = float(value)
    except (TypeError, ValueError) as ex:
        raise InputError(f"{name} must be a number, got {value!r}") from ex
    if not -limit <= out <= limit:
        raise InputError(f"{name} out of range: {out}")
    return out


class Resolution:
    """Runs one request through the state machine."""

    def __init__(self, client, request: ResolveRequest):
        self.client = client
        self.ctx = _Context(request=request)
        self.state = State.INIT

    async def run(self) -> dict:
        handlers = {
            State.INIT: self._init,
            State.LOCATING: self._locate,
            State.UNIT_DISAMBIGUATION: self._disambiguate,
            State.ENRICHING: self._enrich,
        }
        while self.state not in (State.DONE, State.NOT_FOUND):
            logger.debug("state %s", self.state.value)
            self.state = await handlers[self.state]()

        if self.state is State.NOT_FOUND:
            return self._not_found_payload()
        return self._payload()

    async def _init(self) -> State:
        req = self.ctx.request
        self.ctx.point = GeoPoint(
            _coerce_coordinate(req.lat, "lat", 90), _coerce_coordinate(req.lng, "lng", 180)
        )
        self.ctx.provincia = clean_province_name(req.provincia)
        self.ctx.municipio = clean_municipality_name(req.municipio)

        if req.refcat:
            ref = clean_reference(req.refcat)
            if not ref:
                raise InputError(f"refcat must be a 14 or 20 character reference, got {req.refcat!r}")
            self.ctx.refcat = ref
        return State.LOCATING

    async def _locate(self) -> State:
        ctx, req = self.ctx, self.ctx.request

        if ctx.refcat:
            ctx.located_by = "refcat"
            ctx.located_names = (ctx.provincia or None, ctx.municipio or None)
            return State.UNIT_DISAMBIGUATION

        if req.strategy == STRATEGY_COORDS:
            hit = await resolve_from_coordinates(
                self.client, ctx.point.lat, ctx.point.lng, jitter=False, attempts=ctx.attempts
            )
            return self._take_coordinate_hit(hit)

        unreachable = None
        if self._has_address():
            try:
                hit = await resolve_from_address(
                    self.client, req.provincia, req.municipio, req.calle, req.numero, attempts=ctx.attempts
                )
            except UpstreamUnreachable as ex:
                logger.warning("address lookup unreachable, falling back to coordinates: %s", ex)
                ctx.attempts.append(ResolutionAttempt("address", "transport", "unreachable"))
                unreachable, hit = ex, None
            except UpstreamBadResponse as ex:
                logger.warning("address lookup failed, falling back to coordinates: %s", ex)
                hit = None
            if hit is not None:
                ctx.refcat = hit.unit_ref or hit.parcel_ref
                ctx.located_by = "address"
                ctx.located_names = (hit.provincia, hit.municipio)
                ctx.located_codes = (hit.provincia_ine, hit.municipio_ine)
                ctx.locator = hit.locator
                ctx.located_raw = hit.raw
                return State.UNIT_DISAMBIGUATION

        hit = await resolve_from_coordinates(
            self.client, ctx.point.lat, ctx.point.lng, jitter=True, attempts=ctx.attempts
        )
        if hit is None and unreachable is not None:
            # the address branch never got an answer; a miss here isn't "not found"
            raise unreachable
        return self._take_coordinate_hit(hit)

    def _has_address(self) -> bool:
        req = self.ctx.request
        return bool(self.ctx.provincia and self.ctx.municipio and (req.calle or "").strip()
                    and normalize_number(req.numero))

    def _take_coordinate_hit(self, hit) -> State:
        if hit is None:
            return State.NOT_FOUND
        ctx = self.ctx
        ctx.refcat = hit.parcel_ref
        ctx.located_by = "coordinates"
        ctx.located_point = hit.point
        ctx.located_names = (hit.provincia, hit.municipio)
        ctx.locator = hit.locator
        ctx.located_raw = hit.raw
        return State.UNIT_DISAMBIGUATION

    async def _disambiguate(self) -> State:
        ctx = self.ctx
        desired = (ctx.request.unidad or "").strip()
        if len(ctx.refcat) == PARCEL_LEN and desired:
            unit = await pick_unit(self.client, ctx.refcat, desired)
            if unit:
                ctx.attempts.append(ResolutionAttempt("unit", desired, "ok", {"refcat": unit}))
                ctx.refcat = unit
            else:
                ctx.attempts.append(ResolutionAttempt("unit", desired, "miss"))
        return State.ENRICHING

    async def _enrich(self) -> State:
        ctx = self.ctx
        try:
            ctx.record = await enrich(
                self.client,
                ctx.refcat,
                ctx.provincia,
                ctx.municipio,
                locator_text=ctx.locator,
                located=ctx.located_names,
                attempts=ctx.attempts,
            )
        except EnrichmentFailed as ex:
            logger.warning("degraded result for %s: %s", ctx.refcat, ex)
            ctx.degraded = True
        return State.DONE

    def _payload(self) -> dict:
        ctx, req = self.ctx, self.ctx.request
        record = ctx.record or EnrichmentRecord()
        prov_name = record.provincia or ctx.located_names[0] or req.provincia
        muni_name = record.municipio or ctx.located_names[1] or req.municipio

        payload = {
            "ok": True,
            "status": "ok",
            "refcat": ctx.refcat,
            "refcat_tipo": "inmueble" if len(ctx.refcat) == UNIT_LEN else "parcela",
            "provincia": prov_name,
            "municipio": muni_name,
            "provincia_ine": record.provincia_ine or normalize_province_code(ctx.located_codes[0]),
            "municipio_ine": record.municipio_ine or ctx.located_codes[1],
            "direccion": merge_address(ctx.record, ctx.locator, req.calle, req.numero),
            "uso": record.uso,
            "superficie_construida_m2": record.superficie_m2,
            "anio_construccion": record.anio_construccion,
            "fuente": {
                "localizacion": ctx.located_by,
                "punto": [ctx.located_point.lat, ctx.located_point.lng] if ctx.located_point else None,
                "enriquecimiento": record.source,
            },
        }
        if ctx.degraded:
            payload["nota"] = DEGRADED_NOTE
        if req.debug:
            payload["debug"] = self._debug()
        return payload

    def _not_found_payload(self) -> dict:
        payload = {"ok": True, "status": "not_found", "paso": State.LOCATING.value, "refcat": None}
        if self.ctx.request.debug:
            payload["debug"] = self._debug()
        return payload

    def _debug(self) -> dict:
        ctx = self.ctx
        return {
            "intentos": [a.as_dict() for a in ctx.attempts],
            "localizacion_raw": ctx.located_raw[:DEBUG_SAMPLE_CHARS] or None,
            "enriquecimiento_raw": ctx.record.raw[:DEBUG_SAMPLE_CHARS] if ctx.record else None,
        }


async def resolve(client, request: ResolveRequest) -> dict:
    return await Resolution(client, request).run()


async def describe_building(client, refcat: str) -> dict:
    """
    Every unit of the parcel `refcat` belongs to, enriched in parallel.

    Falls back to the given reference alone when the unit listing can't be
    read.
    """
    ref = clean_reference(refcat)
    if not ref:
        raise InputError(f"refcat must be a 14 or 20 character reference, got {refcat!r}")
    parcel = to_parcel(ref)

    units = await list_units(client, parcel) or [ref]
    records = await enrich_many(client, units)

    return {
        "ok": True,
        "id": f"ES.SDGC.BU.{parcel}",
        "units": [
            {
                "refcat": code,
                "uso_principal": rec.uso if rec else None,
                "anio_construccion": rec.anio_construccion if rec else None,
                "superficie_m2": rec.superficie_m2 if rec else None,
            }
            for code, rec in zip(units, records)
        ],
    }
