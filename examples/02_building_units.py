"""
Example 02 — All units of a building (Spanish Catastro)

- Reference (14 or 20 chars) → every unit listed for its parcel
- Each unit enriched with use, built area and construction year

Notes:
- The unit list is scraped from the Sede Electrónica listing page. If that
  page can't be read, only the reference you entered is shown.
"""

import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from catastro.errors import CatastroError
from catastro.http import Fetcher
from catastro.resolver import describe_building


async def _run(refcat: str) -> dict:
    async with Fetcher() as client:
        return await describe_building(client, refcat)


def main():
    refcat = input("Cadastral reference (14 or 20 chars): ").strip()

    try:
        building = asyncio.run(_run(refcat))
    except CatastroError as ex:
        print(f"\n[ERROR] {ex}")
        return

    units = building["units"]
    print(f"\n{building['id']}: {len(units)} unit(s)")
    for u in units:
        area = f"{u['superficie_m2']:g} m2" if u["superficie_m2"] is not None else "? m2"
        print(f"  {u['refcat']}  {u['uso_principal'] or '-'}  {area}  {u['anio_construccion'] or '-'}")


if __name__ == "__main__":
    main()
