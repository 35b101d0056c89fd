"""
Catastro – descriptive attributes for a located reference

Wraps OVCCallejero Consulta_DNPRC (province, municipality, reference ->
address, use, built area, construction year).

The service rejects any province/municipality spelling that doesn't match its
own name table exactly, yet accepts both names empty when the reference alone
is unambiguous. So we try several encodings in a fixed order and keep the
first one that returns a usable document:

    1. names supplied by the caller
    2. names the location step came back with
    3. names parsed from the locator text "... (<PROVINCE>)"
    4. no names at all
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Iterator

from catastro import config
from catastro.document import find_first, find_node, is_empty, parse
from catastro.errors import CatastroError, EnrichmentFailed, UpstreamBadResponse, UpstreamUnreachable
from catastro.models import EnrichmentRecord, ResolutionAttempt
from catastro.names import (
    clean_municipality_name,
    clean_province_name,
    normalize_number,
    normalize_province_code,
    parse_locator,
    strip_accents_upper,
)

logger = logging.getLogger(__name__)

_THOUSANDS_RE = re.compile(r"^\d{1,3}(\.\d{3})+$")


def parse_area(value: str | None) -> float | None:
    """'1.234,5' -> 1234.5, '1.234' -> 1234.0, '95' -> 95.0"""
    if not value:
        return None
    s = value.strip().replace(" ", "")
    if "," in s or _THOUSANDS_RE.match(s):
        s = s.replace(".", "").replace(",", ".")
    try:
        return float(s)
    except ValueError:
        return None


def parse_year(value: str | None) -> int | None:
    s = (value or "").strip()
    if len(s) == 4 and s.isdigit():
        return int(s)
    return None


def name_encodings(
    province_hint: str | None,
    municipality_hint: str | None,
    located: tuple[str | None, str | None] = (None, None),
    locator_text: str | None = None,
) -> Iterator[tuple[str, str, str]]:
    """
    (label, provincia, municipio) in priority order, lazily.

    Pairs already yielded are skipped, and a pair with both names blank is
    only ever tried as the final "empty" step.
    """
    seen: set[tuple[str, str]] = set()

    def candidates():
        yield "hints", clean_province_name(province_hint), clean_municipality_name(municipality_hint)
        yield "located", strip_accents_upper(located[0]), strip_accents_upper(located[1])
        loc = parse_locator(locator_text)
        yield "locator", clean_province_name(loc.provincia), clean_municipality_name(loc.municipio)
        yield "empty", "", ""

    for label, prov, muni in candidates():
        pair = (prov, muni)
        if label != "empty" and not (prov or muni):
            continue
        if pair in seen:
            continue
        seen.add(pair)
        yield label, prov, muni


def _record_from_tree(tree, raw: str, source: str) -> EnrichmentRecord:
    debi = find_node(tree, "debi") or tree
    loine = find_node(tree, "loine") or {}
    return EnrichmentRecord(
        tipo_via=find_first(tree, "tv"),
        nombre_via=find_first(tree, "nv"),
        numero=normalize_number(find_first(tree, "pnp")),
        codigo_postal=find_first(tree, "dp"),
        uso=find_first(debi, "luso"),
        superficie_m2=parse_area(find_first(debi, "sfc")),
        anio_construccion=parse_year(find_first(debi, "ant")),
        provincia=find_first(tree, "np"),
        municipio=find_first(tree, "nm"),
        provincia_ine=normalize_province_code(find_first(loine, "cp")),
        municipio_ine=find_first(loine, "cm"),
        locator=find_first(tree, "ldt"),
        source=source,
        raw=raw,
    )


async def _query(client, reference: str, provincia: str, municipio: str):
    params = {"Provincia": provincia, "Municipio": municipio, "RC": reference}
    resp = await client.fetch(config.ENRICH_URL, params=params, timeout=config.ENRICH_TIMEOUT)
    if not resp.ok:
        raise UpstreamBadResponse(f"Consulta_DNPRC returned HTTP {resp.status}", resp.status)
    tree = parse(resp.body)
    if is_empty(tree) or find_node(tree, "lerr") is not None:
        return None, resp.body
    return tree, resp.body


async def enrich(
    client,
    reference: str,
    province_hint: str | None = None,
    municipality_hint: str | None = None,
    locator_text: str | None = None,
    located: tuple[str | None, str | None] = (None, None),
    attempts: list[ResolutionAttempt] | None = None,
) -> EnrichmentRecord:
    """
    First successful name encoding wins. Raises EnrichmentFailed when none
    does; transport failures count as a failed encoding here.
    """
    log = attempts if attempts is not None else []

    for label, prov, muni in name_encodings(province_hint, municipality_hint, located, locator_text):
        variant = f"{label}:{prov}/{muni}"
        try:
            tree, raw = await _query(client, reference, prov, muni)
        except UpstreamBadResponse as ex:
            logger.warning("enrichment %s for %s rejected: %s", variant, reference, ex)
            log.append(ResolutionAttempt("enrichment", variant, "bad_response", {"status": ex.status}))
            continue
        except UpstreamUnreachable as ex:
            logger.warning("enrichment %s for %s unreachable: %s", variant, reference, ex)
            log.append(ResolutionAttempt("enrichment", variant, "unreachable"))
            continue

        if tree is None:
            logger.debug("enrichment %s for %s: no data", variant, reference)
            log.append(ResolutionAttempt("enrichment", variant, "miss"))
            continue

        log.append(ResolutionAttempt("enrichment", variant, "ok"))
        return _record_from_tree(tree, raw, label)

    raise EnrichmentFailed(f"No name encoding accepted for {reference}")


def merge_address(
    record: EnrichmentRecord | None,
    locator_text: str | None = None,
    calle: str | None = None,
    numero: str | None = None,
) -> dict:
    """
    Structured address. Upstream values win; blanks are filled from the
    locator text, then from what the caller sent. '9999' never survives.
    """
    loc = parse_locator(locator_text or (record.locator if record else None))
    upstream = record or EnrichmentRecord()

    def pick(*values):
        for v in values:
            if v:
                return v
        return None

    return {
        "tipo_via": pick(upstream.tipo_via, loc.tipo_via),
        "nombre_via": pick(upstream.nombre_via, loc.nombre_via, (calle or "").strip()),
        "numero": pick(normalize_number(upstream.numero), loc.numero, normalize_number(numero)),
        "codigo_postal": pick(upstream.codigo_postal, loc.codigo_postal),
        "texto": pick(upstream.locator, locator_text),
    }


async def enrich_many(client, references: list[str], workers: int = config.UNIT_WORKERS) -> list:
    """
    Enrich many references with a fixed pool of workers.

    Result i belongs to references[i] whatever order the calls finish in;
    a reference that can't be enriched yields None.
    """
    results: list[EnrichmentRecord | None] = [None] * len(references)
    queue: asyncio.Queue = asyncio.Queue()
    for item in enumerate(references):
        queue.put_nowait(item)

    async def worker():
        while True:
            try:
                index, ref = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                results[index] = await enrich(client, ref)
            except CatastroError as ex:
                logger.warning("unit %s not enriched: %s", ref, ex)
            finally:
                queue.task_done()

    await asyncio.gather(*(worker() for _ in range(min(workers, len(references)))))
    return results
