from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from loadtally.adapters.erp import ErpInventoryRow, parse_snapshot_row


def test_report_headers_map_onto_snapshot_fields() -> None:
    row = parse_snapshot_row(
        {
            "Serial #": " VA123456 ",
            "Model #": "GTW465ASNWW",
            "CSO": "1064836060",
            "LOAD NUMBER": "9SU20250101",
            "Qty": "1",
            "Inv Qty": "3",
            "Availability Status": "Reserved",
            "Product Type": "Washer",
            "Unrelated Column": "ignored",
        }
    )

    assert row.serial == "VA123456"
    assert row.model == "GTW465ASNWW"
    assert row.cso == "1064836060"
    assert row.bucket == "9SU20250101"
    assert row.qty == 1
    assert row.erp_quantity == 3
    assert row.erp_status == "Reserved"
    assert row.product_type == "Washer"


def test_alternate_headers_are_accepted() -> None:
    row = parse_snapshot_row({"SERIALS": "S1", "ORDC": "C1", "Load Number": "L1", "QTY": 2})

    assert (row.serial, row.cso, row.bucket, row.qty) == ("S1", "C1", "L1", 2)


def test_blank_cells_become_missing_values() -> None:
    row = ErpInventoryRow.model_validate({"Serial #": "  ", "Qty": "", "CSO": "C1"})

    assert row.serial is None
    assert row.qty is None
    assert row.cso == "C1"


@pytest.mark.parametrize("payload", [{"Qty": "-1"}, {"Inv Qty": "many"}])
def test_bad_quantities_are_rejected(payload: dict[str, object]) -> None:
    with pytest.raises(PydanticValidationError):
        ErpInventoryRow.model_validate(payload)
