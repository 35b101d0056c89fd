import asyncio

from catastro import config
from catastro.errors import UpstreamUnreachable
from catastro.http import FetchResponse
from catastro.units import UnitCandidate, extract_candidates, list_units, pick_unit, select_unit
from fakes import PARCEL, UNIT_1, UNIT_2, UNIT_3, UNIT_LISTING, ScriptedClient


def test_priority_door_over_word_over_first():
    candidates = [
        UnitCandidate("C" * 20, "nothing useful"),
        UnitCandidate("B" * 20, "...3..."),
        UnitCandidate("A" * 20, "...Pt: 3..."),
    ]
    assert select_unit(candidates, "3") == "A" * 20
    assert select_unit(candidates[:2], "3") == "B" * 20
    assert select_unit(candidates[:1], "3") == "C" * 20


def test_door_match_is_whole_word():
    candidates = [
        UnitCandidate("A" * 20, "Pl:01 Pt: 31"),
        UnitCandidate("B" * 20, "Pl:01 Pt: 3"),
    ]
    assert select_unit(candidates, "3") == "B" * 20


def test_no_candidates():
    assert select_unit([], "3") is None


def test_extract_candidates_with_context_and_entities():
    candidates = extract_candidates(UNIT_LISTING, PARCEL)
    assert [c.code for c in candidates] == [UNIT_1, UNIT_2, UNIT_3, UNIT_2]
    assert "Pt:01" in candidates[0].context
    assert "Pt: 03" in candidates[1].context
    assert "Pt: 02" in candidates[2].context
    assert "<" not in candidates[0].context


def test_extract_candidates_ignores_other_parcels_and_non_codes():
    page = '<a href="#">Inicio</a>\n<a href="#">9999999XX9999X0001AA</a>\n'
    assert extract_candidates(page, PARCEL) == []
    assert extract_candidates("", PARCEL) == []


def _listing(body):
    def handler(url, params):
        assert url == config.UNIT_LIST_URL
        assert params == {"rc1": PARCEL[:7], "rc2": PARCEL[7:]}
        return body

    return handler


def test_pick_unit_by_door():
    client = ScriptedClient(_listing(UNIT_LISTING))
    assert asyncio.run(pick_unit(client, PARCEL, "3")) == UNIT_2
    assert asyncio.run(pick_unit(client, PARCEL, "2")) == UNIT_3


def test_pick_unit_falls_back_to_first():
    client = ScriptedClient(_listing(UNIT_LISTING))
    assert asyncio.run(pick_unit(client, PARCEL, "7")) == UNIT_1


def test_pick_unit_result_extends_parcel():
    client = ScriptedClient(_listing(UNIT_LISTING))
    for door in ("1", "2", "3", "9"):
        unit = asyncio.run(pick_unit(client, PARCEL, door))
        assert unit[:14] == PARCEL


def test_pick_unit_degrades_to_none():
    assert asyncio.run(pick_unit(ScriptedClient(_listing("<html></html>")), PARCEL, "3")) is None
    assert asyncio.run(pick_unit(ScriptedClient(_listing(FetchResponse(500, ""))), PARCEL, "3")) is None
    unreachable = ScriptedClient(lambda url, params: UpstreamUnreachable(url, 3))
    assert asyncio.run(pick_unit(unreachable, PARCEL, "3")) is None


def test_list_units_dedupes_in_order():
    client = ScriptedClient(_listing(UNIT_LISTING))
    assert asyncio.run(list_units(client, PARCEL)) == [UNIT_1, UNIT_2, UNIT_3]


def test_context_lines_follow_newlines_only():
    page = (
        f'<tr><td><a href="#">{UNIT_1}</a></td>\n'
        "<td>Pl:00\rPt:01  Es:1</td>\n"
        "<td>Residencial</td></tr>\n"
        f'<tr><td><a href="#">{UNIT_2}</a></td>\n'
        "<td>Pl:01 Pt:03</td>\n"
        "<td>Comercial</td></tr>\n"
    )
    candidates = extract_candidates(page, PARCEL)
    assert [c.code for c in candidates] == [UNIT_1, UNIT_2]
    assert "Pt:03" in candidates[1].context
    assert "Comercial" in candidates[1].context
    assert "Pt:03" not in candidates[0].context
    assert select_unit(candidates, "3") == UNIT_2
