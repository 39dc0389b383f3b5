"""Pydantic models describing exported ERP inventory rows."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class ErpBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ErpInventoryRow(ErpBaseModel):
    """One row of an inventory or load report export.

    Column headers vary between report types, hence the alias lists.
    """

    serial: str | None = Field(
        default=None,
        validation_alias=AliasChoices("serial", "Serial #", "Serial#", "Serial", "SERIALS"),
    )
    model: str | None = Field(
        default=None,
        validation_alias=AliasChoices("model", "Model #", "Model#", "Model", "MODELS"),
    )
    cso: str | None = Field(
        default=None,
        validation_alias=AliasChoices("cso", "CSO", "ORDC"),
    )
    load_number: str | None = Field(
        default=None,
        validation_alias=AliasChoices("bucket", "load_number", "LOAD NUMBER", "Load Number"),
    )
    qty: int | None = Field(
        default=None,
        validation_alias=AliasChoices("qty", "Qty", "QTY"),
    )
    inv_qty: int | None = Field(
        default=None,
        validation_alias=AliasChoices("erp_quantity", "Inv Qty", "InvQty"),
    )
    availability_status: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "erp_status", "Availability Status", "AvailabilityStatus", "Status"
        ),
    )
    product_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("product_type", "Product Type"),
    )

    _normalize_blanks = field_validator(
        "serial",
        "model",
        "cso",
        "load_number",
        "qty",
        "inv_qty",
        "availability_status",
        "product_type",
        mode="before",
    )(_blank_to_none)

    @field_validator("qty", "inv_qty")
    @classmethod
    def _non_negative(cls, value: int | None) -> int | None:
        if value is not None and value < 0:
            raise ValueError("quantity must not be negative")
        return value
