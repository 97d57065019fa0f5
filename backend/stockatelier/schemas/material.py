from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, Field, StringConstraints

from stockatelier.schemas.common import APIModel


class MaterialCategory(enum.StrEnum):
    TUBES = "Tubes"
    SHEETS = "Tôles"
    PROFILES = "Profilés"
    SOLID_BARS = "Fers pleins"
    MISC = "Divers"
    CONSUMABLES = "Consommables"
    PAINT = "Peinture & Diluants"


class UnitType(enum.StrEnum):
    BARRE = "BARRE"
    FEUILLE = "FEUILLE"
    PIECE = "PIECE"
    PAQUET = "PAQUET"
    BOITE = "BOITE"
    BIDON = "BIDON"


StockStatus = Literal["ok", "low", "critical"]

_Label100 = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
_Label60 = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=60)]
_Label40 = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=40)]
_Spec = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]
_PackageUnit = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=10)]


class MaterialCreate(BaseModel):
    category: MaterialCategory
    sub_type: _Label100 | None = None
    material_kind: _Label60 | None = None
    shape_type: _Label60 | None = None

    dim_a_mm: int | None = Field(default=None, gt=0)
    dim_b_mm: int | None = Field(default=None, gt=0)
    thickness_mm: int | None = Field(default=None, gt=0)
    sheet_width_mm: int | None = Field(default=None, gt=0)
    sheet_height_mm: int | None = Field(default=None, gt=0)

    package_size: Decimal | None = Field(default=None, gt=0)
    package_unit: _PackageUnit | None = None
    spec_text: _Spec | None = None

    unit_type: UnitType
    unit_variant: _Label40 | None = None

    quantity: int = Field(default=0, ge=0)
    alert_threshold: int = Field(default=5, ge=0)


class MaterialUpdate(BaseModel):
    alert_threshold: int = Field(ge=0)


class MaterialOut(APIModel):
    id: UUID
    name: str
    category: str
    sub_type: str | None = None
    material_kind: str | None = None
    shape_type: str | None = None
    dim_a_mm: int | None = None
    dim_b_mm: int | None = None
    thickness_mm: int | None = None
    sheet_width_mm: int | None = None
    sheet_height_mm: int | None = None
    package_size: float | None = None
    package_unit: str | None = None
    spec_text: str | None = None
    unit: str
    unit_type: str
    unit_variant: str | None = None
    fingerprint: str
    quantity: int
    alert_threshold: int
    active: bool
    stock_status: StockStatus
    created_at: datetime
    updated_at: datetime
