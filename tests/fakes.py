"""Scripted stand-in for catastro.http.Fetcher plus sample upstream bodies."""

import asyncio

from catastro.http import FetchResponse


class ScriptedClient:
    """
    handler(url, params) may return a body string, a FetchResponse, an
    exception instance (raised), or a (delay_seconds, body) tuple.
    """

    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    async def fetch(self, url, params=None, timeout=15, max_attempts=None):
        params = dict(params or {})
        self.calls.append((url, params))
        result = self.handler(url, params)
        if isinstance(result, tuple):
            delay, result = result
            await asyncio.sleep(delay)
        if isinstance(result, Exception):
            raise result
        if isinstance(result, FetchResponse):
            return result
        return FetchResponse(200, result, url)

    def calls_to(self, url):
        return [p for u, p in self.calls if u == url]


PARCEL = "5817804DF4951N"
UNIT_1 = PARCEL + "0001YQ"
UNIT_2 = PARCEL + "0002UW"
UNIT_3 = PARCEL + "0003IE"


def coords_hit(pc1="5817804", pc2="DF4951N", ldt="CL BESSOTS DELS 3 MATARO (BARCELONA)"):
    ldt_xml = f"<ldt>{ldt}</ldt>" if ldt else ""
    return f"""<?xml version="1.0" encoding="utf-8"?>
<consulta_coordenadas xmlns="http://www.catastro.meh.es/">
  <control><cucoor>1</cucoor><cuerr>0</cuerr></control>
  <coordenadas>
    <coord>
      <pc><pc1>{pc1}</pc1><pc2>{pc2}</pc2></pc>
      <geo><xcen>2.489898</xcen><ycen>41.57865</ycen><srs>EPSG:4326</srs></geo>
      {ldt_xml}
    </coord>
  </coordenadas>
</consulta_coordenadas>"""


COORDS_MISS = """<?xml version="1.0" encoding="utf-8"?>
<consulta_coordenadas xmlns="http://www.catastro.meh.es/">
  <control><cucoor>0</cucoor><cuerr>1</cuerr></control>
  <lerr><err><cod>11</cod><des>NO HAY NINGUNA PARCELA EN ESAS COORDENADAS</des></err></lerr>
</consulta_coordenadas>"""


def dnprc_hit(rc_tail="0001YQ", luso="Residencial", sfc="95", ant="1975", pnp="3",
              ldt="CL BESSOTS DELS 3 Es:1 Pl:00 Pt:01 08304 MATARO (BARCELONA)"):
    car, cc = rc_tail[:4], rc_tail[4:]
    return f"""<?xml version="1.0" encoding="utf-8"?>
<consulta_dnp xmlns="http://www.catastro.meh.es/">
  <control><cudnp>1</cudnp><cucons>1</cucons><cucul>0</cucul></control>
  <bico>
    <bi>
      <idbi><cn>UR</cn><rc><pc1>5817804</pc1><pc2>DF4951N</pc2><car>{car}</car><cc1>{cc[0]}</cc1><cc2>{cc[1]}</cc2></rc></idbi>
      <dt>
        <loine><cp>08</cp><cm>121</cm></loine>
        <cmc>120</cmc><np>BARCELONA</np><nm>MATARO</nm>
        <locs><lous><lourb>
          <dir><cv>1234</cv><tv>CL</tv><nv>BESSOTS DELS</nv><pnp>{pnp}</pnp></dir>
          <loint><es>1</es><pt>00</pt><pu>01</pu></loint>
          <dp>08304</dp><dm>1</dm>
        </lourb></lous></locs>
      </dt>
      <ldt>{ldt}</ldt>
      <debi><luso>{luso}</luso><sfc>{sfc}</sfc><cpt>3,450000</cpt><ant>{ant}</ant></debi>
    </bi>
  </bico>
</consulta_dnp>"""


DNPRC_ERROR = """<?xml version="1.0" encoding="utf-8"?>
<consulta_dnp xmlns="http://www.catastro.meh.es/">
  <control><cuerr>1</cuerr></control>
  <lerr><err><cod>12</cod><des>LA PROVINCIA NO EXISTE</des></err></lerr>
</consulta_dnp>"""


MUNICIPIO_HIT = """<?xml version="1.0" encoding="utf-8"?>
<consulta_municipiero xmlns="http://www.catastro.meh.es/">
  <control><cumun>1</cumun></control>
  <municipiero>
    <muni>
      <nm>MATARO</nm>
      <locat><cd>8</cd><cmc>120</cmc></locat>
      <loine><cp>08</cp><cm>121</cm></loine>
    </muni>
  </municipiero>
</consulta_municipiero>"""


def dnploc_single(rc_tail="0001YQ"):
    car, cc = rc_tail[:4], rc_tail[4:]
    return f"""<?xml version="1.0" encoding="utf-8"?>
<consulta_dnp xmlns="http://www.catastro.meh.es/">
  <control><cudnp>1</cudnp></control>
  <bico><bi>
    <idbi><cn>UR</cn><rc><pc1>5817804</pc1><pc2>DF4951N</pc2><car>{car}</car><cc1>{cc[0]}</cc1><cc2>{cc[1]}</cc2></rc></idbi>
    <dt><np>BARCELONA</np><nm>MATARO</nm></dt>
    <ldt>CL BESSOTS DELS 3 MATARO (BARCELONA)</ldt>
  </bi></bico>
</consulta_dnp>"""


DNPLOC_MANY = """<?xml version="1.0" encoding="utf-8"?>
<consulta_dnp xmlns="http://www.catastro.meh.es/">
  <control><cudnp>2</cudnp></control>
  <lrcdnp>
    <rcdnp>
      <rc><pc1>5817804</pc1><pc2>DF4951N</pc2><car>0001</car><cc1>Y</cc1><cc2>Q</cc2></rc>
      <dt><np>BARCELONA</np><nm>MATARO</nm></dt>
    </rcdnp>
    <rcdnp>
      <rc><pc1>5817804</pc1><pc2>DF4951N</pc2><car>0002</car><cc1>U</cc1><cc2>W</cc2></rc>
      <dt><np>BARCELONA</np><nm>MATARO</nm></dt>
    </rcdnp>
  </lrcdnp>
</consulta_dnp>"""


DNPLOC_MISS = """<?xml version="1.0" encoding="utf-8"?>
<consulta_dnp xmlns="http://www.catastro.meh.es/">
  <control><cuerr>1</cuerr></control>
  <lerr><err><cod>43</cod><des>EL NUMERO NO EXISTE</des></err></lerr>
</consulta_dnp>"""


UNIT_LISTING = f"""<html><body>
<table id="ctl00_Contenido_tblInmuebles">
<tr><td><a href="OVCConCiud.aspx?RefC={UNIT_1}">{UNIT_1}</a></td>
<td>CL BESSOTS DELS 3 Es:1 Pl:00 Pt:01</td>
<td>Residencial</td></tr>
<tr><td><a href="OVCConCiud.aspx?RefC={UNIT_2}">{UNIT_2}</a></td>
<td>CL BESSOTS DELS 3 Es:1 Pl:01 Pt:&nbsp;03</td>
<td>Residencial</td></tr>
<tr><td><a href="OVCConCiud.aspx?RefC={UNIT_3}">{UNIT_3}</a></td>
<td>CL BESSOTS DELS 3 Es:1 Pl:02 Pt:&#160;02</td>
<td>Residencial</td></tr>
<tr><td><a href="OVCConCiud.aspx?RefC={UNIT_2}">{UNIT_2}</a></td>
<td>Ver ficha</td>
<td></td></tr>
</table>
</body></html>"""
