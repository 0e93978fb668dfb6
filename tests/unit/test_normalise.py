from __future__ import annotations

import pytest

from kbob.common.constants import (
    REJECT_DUPLICATE_UUID,
    REJECT_EMPTY_GROUP,
    REJECT_INVALID_FIELD,
    REJECT_INVALID_NUMBER,
    REJECT_MISSING_UUID,
)
from kbob.common.models import Material
from kbob.pipeline.normalise import normalise_row, normalise_rows


def _row(uuid: str = "X1", **overrides) -> dict:
    row = {
        "id": "01.001",
        "uuid": uuid,
        "group": "Beton",
        "name": "Magerbeton",
        "nameFr": "Béton maigre",
        "disposal": "Inertstoffdeponie",
        "density": 2150,
        "unit": "kg",
        "ubpTotal": 110.0,
        "ubpProduction": 100.0,
        "ubpDisposal": 10.0,
        "ghgTotal": 0.07,
        "ghgProduction": 0.06,
        "ghgDisposal": 0.01,
    }
    row.update(overrides)
    return row


def test_duplicate_and_negative_density_scenario():
    row_a = _row("X1", name="A")
    row_b = _row("B1", density=-1)
    row_c = _row("X1", name="C")

    result = normalise_rows([row_a, row_b, row_c])

    assert [m.name for m in result.materials] == ["C"]
    assert [(r.row_index, r.reason) for r in result.rejected] == [
        (0, REJECT_DUPLICATE_UUID),
        (1, REJECT_INVALID_NUMBER),
    ]
    assert result.rejected[0].raw_row is row_a
    assert result.rejected_by_reason == {REJECT_DUPLICATE_UUID: 1, REJECT_INVALID_NUMBER: 1}


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), "-inf", "abc", None])
def test_non_finite_or_missing_metric_is_rejected(bad):
    result = normalise_rows([_row(ghgTotal=bad)])

    assert result.materials == ()
    assert result.rejected[0].reason == REJECT_INVALID_NUMBER


def test_missing_uuid_and_empty_group_are_rejected():
    result = normalise_rows([_row(uuid="  "), _row("G1", group=""), "not a row"])

    assert [r.reason for r in result.rejected] == [
        REJECT_MISSING_UUID,
        REJECT_EMPTY_GROUP,
        REJECT_INVALID_FIELD,
    ]


def test_strings_are_trimmed_and_numbers_coerced():
    result = normalise_rows([_row(" U-1 ", name="  Kies ", density="1'500", ubpTotal="1 510,00")])

    material = result.materials[0]
    assert material.uuid == "U-1"
    assert material.name == "Kies"
    assert material.density == 1500.0
    assert material.ubp_total == 1510.0


def test_density_range_keeps_bounds():
    material = normalise_rows([_row(density="1200-2000")]).materials[0]

    assert material.density == 1200.0
    assert (material.density_min, material.density_max) == (1200.0, 2000.0)


def test_extra_scalar_fields_are_preserved():
    result = normalise_rows([_row(biogenicCarbon=0.5, disposalFr="Décharge", note=None)])

    material = result.materials[0]
    assert dict(material.extras) == {"biogenicCarbon": 0.5, "disposalFr": "Décharge", "note": None}
    assert material.to_dict()["disposalFr"] == "Décharge"


def test_non_scalar_extra_field_is_rejected():
    result = normalise_rows([_row(nested={"a": 1})])

    assert result.rejected[0].reason == REJECT_INVALID_FIELD


def test_invalid_later_duplicate_does_not_displace_valid_row():
    result = normalise_rows([_row("X1", name="first"), _row("X1", name="second", density="bad")])

    assert [m.name for m in result.materials] == ["first"]
    assert [r.reason for r in result.rejected] == [REJECT_INVALID_NUMBER]


def test_output_keeps_source_order_and_is_deterministic():
    rows = [_row("C3"), _row("A1"), _row("B2"), _row("A1", name="late")]

    first = normalise_rows(rows)
    second = normalise_rows(rows)

    assert [m.uuid for m in first.materials] == ["C3", "B2", "A1"]
    assert first == second


def test_source_density_bounds_do_not_survive_as_extras():
    material = normalise_row(_row(density="1400 - 1500", densityMin="999", densityMax="n/a"))

    assert "densityMin" not in material.extras
    assert "densityMax" not in material.extras
    payload = material.to_dict()
    assert (payload["densityMin"], payload["densityMax"]) == (1400, 1500)
    assert Material.from_dict(payload) == material
