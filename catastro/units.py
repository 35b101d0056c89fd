"""
Catastro – pick a unit (20-char reference) within a parcel

BEST EFFORT, MAY DEGRADE. There is no API for this: we scrape the Sede
Electrónica property listing (OVCListaBienes.aspx), a human-facing page with
no documented or versioned markup. Unit codes appear as hyperlink text; the
floor/door ("Pl:02 Pt:03") sits on the same or the next couple of lines.

The page has been seen with both "&nbsp;" and "&#160;" between labels and
values, and the same code can be linked more than once. Any failure here
just means the caller keeps the parcel-length reference.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass

from bs4 import BeautifulSoup

from catastro import config
from catastro.errors import CatastroError, UpstreamBadResponse
from catastro.models import PARCEL_LEN, UNIT_LEN

logger = logging.getLogger(__name__)

_UNIT_RE = re.compile(r"^[0-9A-Z]{20}$")
_TAG_RE = re.compile(r"<[^>]*>")
_WS = re.compile(r"\s+")

CONTEXT_LINES = 3


@dataclass(frozen=True)
class UnitCandidate:
    code: str
    context: str


def _flatten(lines: list[str]) -> str:
    text = html.unescape(_TAG_RE.sub(" ", " ".join(lines)))
    return _WS.sub(" ", text.replace("\xa0", " ")).strip()


def extract_candidates(page: str, parcel_ref: str | None = None) -> list[UnitCandidate]:
    """
    Every 20-char code found as link text, in document order, with its
    line plus the next two (tags stripped, whitespace collapsed).

    When parcel_ref is given, codes belonging to other parcels are dropped.
    """
    if not page:
        return []
    # sourceline counts "\n" only
    lines = page.split("\n")
    soup = BeautifulSoup(page, "html.parser")
    prefix = (parcel_ref or "")[:PARCEL_LEN]

    out: list[UnitCandidate] = []
    for a in soup.find_all("a"):
        code = "".join(a.get_text().split()).upper()
        if not _UNIT_RE.match(code):
            continue
        if prefix and not code.startswith(prefix):
            continue
        line_no = (a.sourceline or 1) - 1
        out.append(UnitCandidate(code, _flatten(lines[line_no : line_no + CONTEXT_LINES])))
    return out


def select_unit(candidates: list[UnitCandidate], desired: str | None) -> str | None:
    """
    1. context has "Pt: <desired>" as a whole word
    2. context has <desired> as a standalone word
    3. first candidate
    """
    if not candidates:
        return None

    wanted = (desired or "").strip()
    if wanted:
        door = re.escape(wanted.lstrip("0") or "0")
        by_door = re.compile(rf"\bPt:\s*0*{door}(?![\w])", re.IGNORECASE)
        by_word = re.compile(rf"(?<![\w]){re.escape(wanted)}(?![\w])", re.IGNORECASE)
        for pattern in (by_door, by_word):
            for c in candidates:
                if pattern.search(c.context):
                    return c.code

    return candidates[0].code


async def fetch_candidates(client, parcel_ref: str) -> list[UnitCandidate]:
    params = {"rc1": parcel_ref[:7], "rc2": parcel_ref[7:PARCEL_LEN]}
    resp = await client.fetch(config.UNIT_LIST_URL, params=params, timeout=config.UNIT_LIST_TIMEOUT)
    if not resp.ok:
        raise UpstreamBadResponse(f"unit listing returned HTTP {resp.status}", resp.status)
    return extract_candidates(resp.body, parcel_ref)


async def list_units(client, parcel_ref: str) -> list[str]:
    """Distinct unit codes of a parcel in listing order; [] if the page can't be read."""
    try:
        candidates = await fetch_candidates(client, parcel_ref)
    except CatastroError as ex:
        logger.warning("unit listing unavailable for %s: %s", parcel_ref, ex)
        return []

    seen: set[str] = set()
    codes: list[str] = []
    for c in candidates:
        if c.code not in seen:
            seen.add(c.code)
            codes.append(c.code)
    return codes


async def pick_unit(client, parcel_ref: str, desired: str | None) -> str | None:
    """Unit reference within parcel_ref best matching `desired`, or None."""
    if len(parcel_ref or "") != PARCEL_LEN:
        return None
    try:
        candidates = await fetch_candidates(client, parcel_ref)
    except CatastroError as ex:
        logger.warning("unit disambiguation skipped for %s: %s", parcel_ref, ex)
        return None

    logger.debug("%d unit candidate(s) for %s", len(candidates), parcel_ref)
    code = select_unit(candidates, desired)
    if code and len(code) == UNIT_LEN and code.startswith(parcel_ref):
        return code
    return None
