"""
Catastro – address → cadastral reference

Wraps the OVCCallejero street-directory service:
https://ovc.catastro.meh.es/ovcservweb/OVCSWLocalizacionRC/OVCCallejero.asmx

- ConsultaMunicipio: province/municipality names -> INE statistical codes
  (2-digit province, 3-digit municipality) plus the canonical spelling.
- Consulta_DNPLOC: province, municipality, way type, way name, number ->
  one property (<bico>) or a list of them (<lrcdnp>).

Notes:
- Geocoding is not done here; this only looks up a postal address already
  known to the caller.
- The service matches names exactly against its own table, hence the
  normalisation before every call.
"""

from __future__ import annotations

import logging

from catastro import config
from catastro.cadastre import extract_reference, to_parcel
from catastro.document import find_first, find_node, find_nodes, parse
from catastro.errors import CatastroError, UpstreamBadResponse
from catastro.models import UNIT_LEN, AddressHit, ResolutionAttempt
from catastro.names import (
    clean_municipality_name,
    clean_province_name,
    normalize_number,
    normalize_province_code,
    strip_accents_upper,
)

logger = logging.getLogger(__name__)

# Spanish / Catalan / Galician way names -> Catastro "sigla"
WAY_TYPES = {
    "CALLE": "CL", "CARRER": "CL", "RUA": "CL", "C/": "CL", "CL": "CL",
    "AVENIDA": "AV", "AVINGUDA": "AV", "AVDA": "AV", "AV": "AV",
    "PLAZA": "PZ", "PLACA": "PZ", "PRAZA": "PZ", "PZ": "PZ",
    "PASEO": "PS", "PASSEIG": "PS", "PS": "PS",
    "CAMINO": "CM", "CAMI": "CM", "CM": "CM",
    "CARRETERA": "CR", "CR": "CR",
    "RONDA": "RD", "RD": "RD",
    "TRAVESIA": "TR", "TRAVESSERA": "TR", "TR": "TR",
    "PASAJE": "PJ", "PASSATGE": "PJ", "PJ": "PJ",
    "URBANIZACION": "UR", "UR": "UR",
}


def split_street(street: str | None) -> tuple[str, str]:
    """
    "Carrer Dels Bessots" -> ("CL", "DELS BESSOTS")
    "Bessots"             -> ("", "BESSOTS")
    """
    s = strip_accents_upper(street)
    if not s:
        return "", ""
    tokens = s.split()
    sigla = WAY_TYPES.get(tokens[0].rstrip("."))
    if sigla and len(tokens) > 1:
        return sigla, " ".join(tokens[1:])
    return "", s


async def municipality_codes(client, provincia: str, municipio: str) -> dict:
    """
    {"provincia_ine", "municipio_ine", "municipio"} for a normalised name pair.
    Values are None when the service doesn't recognise the names.
    """
    params = {"Provincia": provincia, "Municipio": municipio}
    resp = await client.fetch(config.MUNICIPALITY_URL, params=params, timeout=config.MUNICIPALITY_TIMEOUT)
    if not resp.ok:
        raise UpstreamBadResponse(f"ConsultaMunicipio returned HTTP {resp.status}", resp.status)

    tree = parse(resp.body)
    loine = find_node(tree, "loine") or {}
    return {
        "provincia_ine": normalize_province_code(find_first(loine, "cp")),
        "municipio_ine": find_first(loine, "cm"),
        "municipio": find_first(find_node(tree, "muni") or {}, "nm"),
    }


def _pick_reference(tree) -> tuple[str | None, str | None]:
    """(parcel, unit) from a DNPLOC response; unit only when unambiguous."""
    units = find_nodes(tree, "rcdnp")
    if units:
        refs = [extract_reference(u) for u in units]
        refs = [r for r in refs if r]
        if not refs:
            return None, None
        unit = refs[0] if len(refs) == 1 and len(refs[0]) == UNIT_LEN else None
        return to_parcel(refs[0]), unit

    ref = extract_reference(find_node(tree, "bico") or tree)
    if not ref:
        return None, None
    return to_parcel(ref), ref if len(ref) == UNIT_LEN else None


async def resolve_from_address(
    client,
    provincia: str | None,
    municipio: str | None,
    calle: str | None,
    numero: str | None,
    attempts: list[ResolutionAttempt] | None = None,
) -> AddressHit | None:
    """
    Parcel reference for a postal address, or None.

    Returns None without touching the network unless province, municipality,
    street and number are all present after normalisation.
    """
    log = attempts if attempts is not None else []
    prov = clean_province_name(provincia)
    muni = clean_municipality_name(municipio)
    sigla, via = split_street(calle)
    num = normalize_number(numero)

    if not (prov and muni and via and num):
        log.append(ResolutionAttempt("address", "incomplete", "miss"))
        return None

    codes = {"provincia_ine": None, "municipio_ine": None, "municipio": None}
    try:
        codes = await municipality_codes(client, prov, muni)
    except CatastroError as ex:
        logger.warning("municipality lookup failed for %s/%s: %s", prov, muni, ex)
    if codes["municipio"]:
        muni = clean_municipality_name(codes["municipio"])

    params = {
        "Provincia": prov,
        "Municipio": muni,
        "Sigla": sigla,
        "Calle": via,
        "Numero": num,
        "Bloque": "",
        "Escalera": "",
        "Planta": "",
        "Puerta": "",
    }
    variant = f"{prov}/{muni}/{sigla} {via} {num}".strip()
    resp = await client.fetch(config.ADDRESS_URL, params=params, timeout=config.ADDRESS_TIMEOUT)
    if not resp.ok:
        log.append(ResolutionAttempt("address", variant, "bad_response", {"status": resp.status}))
        raise UpstreamBadResponse(f"Consulta_DNPLOC returned HTTP {resp.status}", resp.status)

    tree = parse(resp.body)
    parcel, unit = _pick_reference(tree)
    if not parcel:
        logger.debug("no reference for address %s", variant)
        log.append(ResolutionAttempt("address", variant, "miss"))
        return None

    log.append(ResolutionAttempt("address", variant, "ok", {"refcat": unit or parcel}))
    return AddressHit(
        parcel_ref=parcel,
        unit_ref=unit,
        tree=tree,
        raw=resp.body,
        provincia=find_first(tree, "np") or prov,
        municipio=find_first(tree, "nm") or muni,
        provincia_ine=codes["provincia_ine"],
        municipio_ine=codes["municipio_ine"],
        locator=find_first(tree, "ldt"),
    )
