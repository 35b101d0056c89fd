"""
Example 01 — Cadastral reference from a point (Spanish Catastro)

Prompts for a lat/lng (and optionally an address and door number), resolves
the cadastral reference and prints the enriched result.

Notes:
- OVC can be slow or drop connections; the fetcher retries, but a run can
  still fail with "upstream unreachable". Re-run if that happens.
- Example point: 41.57865, 2.489898 (Mataró).
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from catastro.errors import CatastroError
from catastro.http import Fetcher
from catastro.resolver import ResolveRequest, resolve


def _ask(prompt: str) -> str | None:
    return input(prompt).strip() or None


async def _run(request: ResolveRequest) -> dict:
    async with Fetcher() as client:
        return await resolve(client, request)


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")

    lat = input("Latitude (e.g. 41.57865): ").strip()
    lng = input("Longitude (e.g. 2.489898): ").strip()
    request = ResolveRequest(
        lat=lat,
        lng=lng,
        provincia=_ask("Province (optional): "),
        municipio=_ask("Municipality (optional): "),
        calle=_ask("Street (optional): "),
        numero=_ask("Street number (optional): "),
        unidad=_ask("Door number (optional): "),
        debug=(input("Debug? [y/N]: ").strip().lower() == "y"),
    )

    try:
        result = asyncio.run(_run(request))
    except CatastroError as ex:
        print(f"\n[ERROR] {ex}")
        print(json.dumps(ex.to_dict(), ensure_ascii=False))
        return

    if result["status"] == "not_found":
        print("\nNo cadastral reference found at that point.")
        return

    print(json.dumps(result, indent=2, ensure_ascii=False))
    if "nota" in result:
        print(f"\nWARNING: {result['nota']}")


if __name__ == "__main__":
    main()
