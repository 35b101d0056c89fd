"""
Catastro – administrative name normalisation

The OVC endpoints disagree on accents, case and zero-padding ("Barcelona",
"BARCELONA", "Província de Barcelona", "08", "8"). Anything that re-queries one
endpoint with names taken from another must go through these first.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

NUMBER_SENTINEL = "9999"

_PROVINCE_PREFIX = re.compile(r"^PROVINCIA\s+DE\s+")
_PROVINCE_SUFFIX = re.compile(r"\s+PROVINCIA$")
_WS = re.compile(r"\s+")

_LOCATOR_RE = re.compile(r"^(?P<body>.*?)\s*\((?P<prov>[^()]+)\)\s*$")
_WAY_NUMBER_RE = re.compile(r"^(?P<tv>[A-Z]{2})\s+(?P<nv>.+?)\s+(?P<num>\d+[A-Z]?)(?:\s+(?P<rest>.*))?$")
_POSTCODE_RE = re.compile(r"^\d{5}$")


def strip_accents_upper(value: str | None) -> str:
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value)
    bare = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WS.sub(" ", bare).upper().strip()


def clean_province_name(value: str | None) -> str:
    """'Provincia de Barcelona' / 'Barcelona provincia' -> 'BARCELONA'. Idempotent."""
    s = strip_accents_upper(value)
    while True:
        stripped = _PROVINCE_SUFFIX.sub("", _PROVINCE_PREFIX.sub("", s)).strip()
        if stripped == s:
            return s
        s = stripped


def clean_municipality_name(value: str | None) -> str:
    return strip_accents_upper(value)


def normalize_province_code(value) -> str | None:
    """'08' -> '8'. None when the value isn't a plain number."""
    if value is None:
        return None
    s = str(value).strip()
    if not s.isdigit():
        return None
    return str(int(s))


def normalize_number(value) -> str | None:
    """House numbers: blank and the upstream '9999' placeholder both mean unknown."""
    if value is None:
        return None
    s = str(value).strip()
    if not s or s == NUMBER_SENTINEL:
        return None
    return s


@dataclass(frozen=True)
class LocatorParts:
    tipo_via: str | None = None
    nombre_via: str | None = None
    numero: str | None = None
    codigo_postal: str | None = None
    municipio: str | None = None
    provincia: str | None = None


def parse_locator(text: str | None) -> LocatorParts:
    """
    Best-effort split of OVC locator text, e.g.

        "CL BESSOTS DELS 3 MATARO (BARCELONA)"
        "CL BESSOTS DELS 3 Es:1 Pl:02 Pt:01 08304 MATARO (BARCELONA)"

    Only the trailing "(<province>)" is reliable; everything else may be None.
    """
    s = _WS.sub(" ", (text or "").strip())
    if not s:
        return LocatorParts()

    m = _LOCATOR_RE.match(s)
    if not m:
        return LocatorParts()
    provincia = m.group("prov").strip() or None
    body = m.group("body").strip()

    wm = _WAY_NUMBER_RE.match(body.upper())
    if not wm:
        return LocatorParts(provincia=provincia)

    postcode = None
    muni_tokens = []
    for token in (wm.group("rest") or "").split():
        if ":" in token:
            continue
        if _POSTCODE_RE.match(token):
            postcode = token
            continue
        muni_tokens.append(token)

    return LocatorParts(
        tipo_via=wm.group("tv"),
        nombre_via=wm.group("nv"),
        numero=normalize_number(wm.group("num")),
        codigo_postal=postcode,
        municipio=" ".join(muni_tokens) or None,
        provincia=provincia,
    )
